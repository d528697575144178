"""
Storefront product listing schemas

The caller supplies the category's product rows (catalog dicts with
upper-case keys) together with the page's query params.
"""
from typing import Any, Dict, List, Literal
from pydantic import BaseModel, Field


class ProductFilterSpec(BaseModel):
    """A side-nav filter group; VARIATIONS groups match any variation's value."""
    name: str = Field(..., min_length=1, max_length=50)
    source: Literal["DIRECT", "VARIATIONS"] = "DIRECT"


class ProductBrowseRequest(BaseModel):
    products: List[Dict[str, Any]] = []
    # page, perPage, sortBy, search, price-range and one key per filter group
    params: Dict[str, Any] = {}
    filters: List[ProductFilterSpec] = []


class ProductPageResponse(BaseModel):
    products: List[Dict[str, Any]]
    total_pages: int
    product_count: int
    page: int
    per_page: int
    sort_by: str
    active_filters: Dict[str, List[str]]
    facets: Dict[str, List[str]]
