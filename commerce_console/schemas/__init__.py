from commerce_console.schemas.taxonomy import (
    CategoryCreate, CategoryUpdate, CategoryResponse, CategoryDetailResponse,
    CategoryList, CategoryOptionResponse, StorefrontCategoryResponse,
)
from commerce_console.schemas.refund import (
    RefundItem, RefundCreate, RefundStatusUpdate, StatusHistoryEntry,
    RefundResponse, RefundList, OrderRefundSummary,
)
from commerce_console.schemas.product import (
    ProductFilterSpec, ProductBrowseRequest, ProductPageResponse,
)
