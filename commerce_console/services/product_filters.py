"""
Storefront product filtering

Pure functions behind the category listing page and its side-nav facets:
(products, active filters, sort, page) -> one page of products.

Products are the catalog API's dicts with upper-case keys (STYLE_ID, NAME,
BRAND, SELLING_PRICE, REGULAR_PRICE, VARIATIONS). A filter value list is
OR-ed within its group; groups are AND-ed together.
"""
import logging
import math
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union
from urllib.parse import unquote

logger = logging.getLogger(__name__)

SOURCE_DIRECT = "DIRECT"
SOURCE_VARIATIONS = "VARIATIONS"

PRICE_RANGE_PARAM = "price-range"

UNDER_50 = "Under $50"
FROM_50_TO_100 = "$50 - $100"
FROM_100_TO_200 = "$100 - $200"
OVER_200 = "Over $200"

PRICE_RANGES = (UNDER_50, FROM_50_TO_100, FROM_100_TO_200, OVER_200)

# label -> predicate on the selling price
_PRICE_PREDICATES: Dict[str, Callable[[Decimal], bool]] = {
    UNDER_50: lambda p: p < 50,
    FROM_50_TO_100: lambda p: 50 <= p <= 100,
    FROM_100_TO_200: lambda p: 100 <= p <= 200,
    OVER_200: lambda p: p > 200,
}

SORT_NAME_AZ = "nameAZ"
SORT_NAME_ZA = "nameZA"
SORT_PRICE_LOW_HIGH = "priceLowToHigh"
SORT_PRICE_HIGH_LOW = "priceHighToLow"
SORT_BRAND = "brand"

SORT_OPTIONS = (SORT_NAME_AZ, SORT_NAME_ZA, SORT_PRICE_LOW_HIGH, SORT_PRICE_HIGH_LOW, SORT_BRAND)
DEFAULT_SORT = SORT_NAME_AZ
DEFAULT_PER_PAGE = 8


@dataclass(frozen=True)
class FilterDefinition:
    """One side-nav filter group (brand, color, size, price-range, ...)."""
    name: str
    source: str = SOURCE_DIRECT
    is_price: bool = False

    @property
    def key(self) -> str:
        return self.name.upper()


PRICE_RANGE_FILTER = FilterDefinition(PRICE_RANGE_PARAM, is_price=True)


@dataclass
class ProductPage:
    products: List[Dict[str, Any]]
    total_pages: int
    product_count: int
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE
    sort_by: str = DEFAULT_SORT
    active_filters: Dict[str, List[str]] = field(default_factory=dict)


def _price(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return price if price.is_finite() else None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def ensure_array(param: Union[str, Sequence[str], None]) -> List[str]:
    """Query param -> list of URL-decoded values; strings split on commas."""
    if not param:
        return []
    if isinstance(param, str):
        return [unquote(item.strip()) for item in param.split(",") if item.strip()]
    return [unquote(item) for item in param if item]


def unique_by_style(products: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Keep the first product per STYLE_ID."""
    seen = set()
    unique = []
    for product in products:
        style_id = product.get("STYLE_ID")
        if style_id in seen:
            continue
        seen.add(style_id)
        unique.append(product)
    return unique


def smart_search(products: List[Dict[str, Any]], search_term: Optional[str]) -> List[Dict[str, Any]]:
    """
    Fuzzy subsequence match on NAME or BRAND.

    'nke' matches 'Nike': every search character must appear in order,
    with anything in between.
    """
    term = (search_term or "").strip().lower()
    if not term:
        return products

    pattern = re.compile(".*?".join(re.escape(c) for c in term), re.IGNORECASE)
    return [
        p for p in products
        if pattern.search(str(p.get("NAME") or "")) or pattern.search(str(p.get("BRAND") or ""))
    ]


def facet_values(products: Iterable[Dict[str, Any]], name: str, source: str = SOURCE_DIRECT) -> List[str]:
    """Distinct non-blank values for a filter group, in first-seen order."""
    key = name.upper()
    values: Dict[str, None] = {}
    for product in products:
        if source == SOURCE_VARIATIONS:
            candidates = [v.get(key) for v in (product.get("VARIATIONS") or [])]
        else:
            candidates = [product.get(key)]
        for candidate in candidates:
            text = _text(candidate)
            if text is not None:
                values.setdefault(text, None)
    return list(values)


def parse_filter_params(
    params: Mapping[str, Any],
    definitions: Sequence[FilterDefinition],
) -> Dict[str, List[str]]:
    """Selected values per filter group; groups with no selection are omitted."""
    selected = {}
    names = [d.name for d in definitions]
    if PRICE_RANGE_PARAM not in names:
        names.append(PRICE_RANGE_PARAM)
    for name in names:
        values = ensure_array(params.get(name))
        if values:
            selected[name] = values
    return selected


def _matches(product: Dict[str, Any], definition: FilterDefinition, values: List[str]) -> bool:
    if definition.is_price:
        price = _price(product.get("SELLING_PRICE"))
        if price is None:
            return False
        predicates = [_PRICE_PREDICATES[v] for v in values if v in _PRICE_PREDICATES]
        if not predicates:
            return True
        return any(predicate(price) for predicate in predicates)

    if definition.source == SOURCE_VARIATIONS:
        variations = product.get("VARIATIONS")
        if not isinstance(variations, list):
            return False
        return any(str(v.get(definition.key)) in values for v in variations if v.get(definition.key) is not None)

    value = product.get(definition.key)
    return value is not None and str(value) in values


def filter_products(
    products: Iterable[Dict[str, Any]],
    active_filters: Mapping[str, List[str]],
    definitions: Sequence[FilterDefinition],
) -> List[Dict[str, Any]]:
    """Apply every active filter group. Unknown group names are ignored."""
    by_name = {d.name: d for d in definitions}
    by_name.setdefault(PRICE_RANGE_PARAM, PRICE_RANGE_FILTER)

    groups = []
    for name, values in active_filters.items():
        definition = by_name.get(name)
        if definition is None:
            logger.debug(f"Ignoring unknown filter group '{name}'")
            continue
        if values:
            groups.append((definition, list(values)))

    if not groups:
        return list(products)

    return [
        p for p in products
        if all(_matches(p, definition, values) for definition, values in groups)
    ]


def sort_products(products: Iterable[Dict[str, Any]], sort_by: Optional[str] = DEFAULT_SORT) -> List[Dict[str, Any]]:
    """
    Sort for display. Products missing the sort value always go last.

    Unknown sort keys keep the incoming order.
    """
    products = list(products)
    if sort_by in (SORT_NAME_AZ, SORT_NAME_ZA, SORT_BRAND):
        key_name = "BRAND" if sort_by == SORT_BRAND else "NAME"
        extract = lambda p: _text(p.get(key_name))
        sort_key = lambda p: extract(p).casefold()
    elif sort_by in (SORT_PRICE_LOW_HIGH, SORT_PRICE_HIGH_LOW):
        extract = lambda p: _price(p.get("REGULAR_PRICE"))
        sort_key = extract
    else:
        return products

    present = [p for p in products if extract(p) is not None]
    missing = [p for p in products if extract(p) is None]
    present.sort(key=sort_key, reverse=sort_by in (SORT_NAME_ZA, SORT_PRICE_HIGH_LOW))
    return present + missing


def paginate(products: List[Dict[str, Any]], page: int = 1, per_page: int = DEFAULT_PER_PAGE) -> ProductPage:
    per_page = per_page if per_page and per_page > 0 else DEFAULT_PER_PAGE
    page = page if page and page > 0 else 1
    offset = (page - 1) * per_page
    return ProductPage(
        products=products[offset:offset + per_page],
        total_pages=math.ceil(len(products) / per_page),
        product_count=len(products),
        page=page,
        per_page=per_page,
    )


def _int_param(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def browse_products(
    products: Iterable[Dict[str, Any]],
    params: Mapping[str, Any],
    definitions: Sequence[FilterDefinition],
    default_per_page: int = DEFAULT_PER_PAGE,
) -> ProductPage:
    """
    Full listing pipeline for a category page.

    Reads page, perPage, sortBy and search from `params` alongside the
    filter groups named by `definitions`.
    """
    per_page = _int_param(params.get("perPage"), default_per_page)
    if per_page <= 0:
        per_page = default_per_page
    page = _int_param(params.get("page"), 1) or 1
    sort_by = params.get("sortBy") or DEFAULT_SORT

    active = parse_filter_params(params, definitions)

    listing = unique_by_style(products)
    listing = smart_search(listing, params.get("search"))
    listing = filter_products(listing, active, definitions)
    listing = sort_products(listing, sort_by)

    result = paginate(listing, page, per_page)
    result.sort_by = sort_by
    result.active_filters = active
    return result
