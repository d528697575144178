"""
Admin Category API Routes

Catalog > Categories in the admin console:
- List all taxonomy rows and the parent-selector options
- View one category with its resolved parent and children
- Create / edit / delete; level fields and web URL are derived server-side
"""
import logging
from typing import List
from fastapi import APIRouter, Depends, status

from commerce_console.api.deps import get_admin_actor, get_taxonomy_service
from commerce_console.core.error_handler import http_error
from commerce_console.core.exceptions import CommerceBaseError, TaxonomyIntegrityError
from commerce_console.schemas.taxonomy import (
    CategoryCreate,
    CategoryUpdate,
    CategoryResponse,
    CategoryDetailResponse,
    CategoryList,
    CategoryOptionResponse,
)
from commerce_console.services.taxonomy import (
    TaxonomyNode,
    display_name,
    level_label,
    path_label,
)
from commerce_console.services.taxonomy_service import TaxonomyService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin/catalog/categories", tags=["admin-categories"])


def category_response(node: TaxonomyNode) -> CategoryResponse:
    """Flattened row plus resolved name/path, or the integrity error if unresolvable."""
    data = node.to_dict()
    try:
        data.update(
            name=display_name(node),
            path=path_label(node),
            level=level_label(node),
        )
    except TaxonomyIntegrityError as e:
        data["integrity_error"] = e.message
    return CategoryResponse(**data)


@router.get("", response_model=CategoryList)
async def list_categories(
    service: TaxonomyService = Depends(get_taxonomy_service),
):
    nodes = await service.load_nodes()
    return CategoryList(
        categories=[category_response(n) for n in nodes],
        total=len(nodes),
    )


@router.get("/options", response_model=List[CategoryOptionResponse])
async def list_parent_options(
    service: TaxonomyService = Depends(get_taxonomy_service),
):
    """Active categories, depth-first, for the parent selector."""
    return [
        CategoryOptionResponse(
            id=option.value,
            label=option.path_label,
            level=option.level_label,
            depth=option.depth,
        )
        for option in await service.options()
    ]


@router.get("/{category_id}", response_model=CategoryDetailResponse)
async def get_category(
    category_id: int,
    service: TaxonomyService = Depends(get_taxonomy_service),
):
    try:
        node, parent, children = await service.get_detail(category_id)
    except CommerceBaseError as e:
        raise http_error(e)

    return CategoryDetailResponse(
        **category_response(node).model_dump(),
        parent=category_response(parent) if parent else None,
        children=[category_response(c) for c in children],
    )


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    service: TaxonomyService = Depends(get_taxonomy_service),
    actor: str = Depends(get_admin_actor),
):
    try:
        node = await service.create(data)
    except CommerceBaseError as e:
        logger.info(f"Category create by {actor} refused: {e.message}")
        raise http_error(e)
    return category_response(node)


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    data: CategoryUpdate,
    service: TaxonomyService = Depends(get_taxonomy_service),
    actor: str = Depends(get_admin_actor),
):
    try:
        node = await service.update(category_id, data)
    except CommerceBaseError as e:
        logger.info(f"Category {category_id} update by {actor} refused: {e.message}")
        raise http_error(e)
    return category_response(node)


@router.delete("/{category_id}")
async def delete_category(
    category_id: int,
    service: TaxonomyService = Depends(get_taxonomy_service),
    actor: str = Depends(get_admin_actor),
):
    try:
        await service.delete(category_id)
    except CommerceBaseError as e:
        raise http_error(e)
    logger.info(f"Category {category_id} deleted by {actor}")
    return {"message": "Category deleted", "id": category_id}
