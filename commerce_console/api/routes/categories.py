"""
Storefront category routes

Resolves /category/{slug} pages: the category itself, its "shop by
category" children, the breadcrumb trail, and the filtered/sorted/paged
product listing with its side-nav facets.
"""
import logging
from fastapi import APIRouter, Depends

from commerce_console.api.deps import get_taxonomy_service
from commerce_console.api.routes.admin_categories import category_response
from commerce_console.core.config import settings
from commerce_console.core.error_handler import http_error
from commerce_console.core.exceptions import CommerceBaseError
from commerce_console.schemas.product import ProductBrowseRequest, ProductPageResponse
from commerce_console.schemas.taxonomy import StorefrontCategoryResponse
from commerce_console.services.product_filters import (
    PRICE_RANGES,
    PRICE_RANGE_PARAM,
    FilterDefinition,
    browse_products,
    facet_values,
)
from commerce_console.services.taxonomy_service import TaxonomyService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("/{slug}", response_model=StorefrontCategoryResponse)
async def get_category_by_url(
    slug: str,
    service: TaxonomyService = Depends(get_taxonomy_service),
):
    try:
        node, children, trail = await service.storefront_category(slug)
    except CommerceBaseError as e:
        raise http_error(e)

    return StorefrontCategoryResponse(
        category=category_response(node),
        children=[category_response(c) for c in children],
        breadcrumbs=[category_response(n) for n in trail],
    )


@router.post("/{slug}/products", response_model=ProductPageResponse)
async def browse_category_products(
    slug: str,
    data: ProductBrowseRequest,
    service: TaxonomyService = Depends(get_taxonomy_service),
):
    """
    One page of the category's products.

    Facets are computed over the whole supplied set so the side nav keeps
    every option visible while filters are applied.
    """
    try:
        await service.storefront_category(slug)
    except CommerceBaseError as e:
        raise http_error(e)

    definitions = [FilterDefinition(f.name, source=f.source) for f in data.filters]
    page = browse_products(
        data.products,
        data.params,
        definitions,
        default_per_page=settings.STOREFRONT_DEFAULT_PER_PAGE,
    )

    facets = {d.name: facet_values(data.products, d.name, d.source) for d in definitions}
    facets[PRICE_RANGE_PARAM] = list(PRICE_RANGES)

    logger.debug(
        f"Category {slug}: {page.product_count} products match {page.active_filters}"
    )
    return ProductPageResponse(
        products=page.products,
        total_pages=page.total_pages,
        product_count=page.product_count,
        page=page.page,
        per_page=page.per_page,
        sort_by=page.sort_by,
        active_filters=page.active_filters,
        facets=facets,
    )
