"""
Category (taxonomy) schemas

Admin writes take a name plus an optional parent; the five level fields
and the web URL are derived server-side and never accepted from clients.
"""
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator


# =============================================================
# Request Schemas
# =============================================================

class CategoryBase(BaseModel):
    active: bool = True
    short_desc: Optional[str] = Field(None, max_length=500)
    long_description: Optional[str] = None
    meta_tags: Optional[str] = Field(None, max_length=500)
    sort_position: Optional[str] = Field(None, max_length=20)
    category_style: Optional[str] = Field(None, max_length=100)


class CategoryCreate(CategoryBase):
    """Create a category under `parent_id` (top level when omitted)."""
    name: str = Field(..., min_length=1, max_length=255)
    parent_id: Optional[int] = Field(None, gt=0)

    @field_validator('name')
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Category name is required')
        return v


class CategoryUpdate(BaseModel):
    """
    Partial edit. Sending parent_id (even null) moves the category;
    omitting it keeps the current parent.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    parent_id: Optional[int] = Field(None, gt=0)
    active: Optional[bool] = None
    short_desc: Optional[str] = Field(None, max_length=500)
    long_description: Optional[str] = None
    meta_tags: Optional[str] = Field(None, max_length=500)
    sort_position: Optional[str] = Field(None, max_length=20)
    category_style: Optional[str] = Field(None, max_length=100)

    @field_validator('name')
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError('Category name cannot be blank')
        return v


# =============================================================
# Response Schemas
# =============================================================

class CategoryResponse(BaseModel):
    id: int
    name: Optional[str] = None
    path: Optional[str] = None
    level: Optional[str] = None
    dept: str
    typ: str
    subtyp_1: str
    subtyp_2: str
    subtyp_3: str
    web_url: str
    active: bool
    short_desc: Optional[str] = None
    long_description: Optional[str] = None
    meta_tags: Optional[str] = None
    sort_position: Optional[str] = None
    # Set instead of name/path/level when the row's levels are malformed
    integrity_error: Optional[str] = None

    class Config:
        from_attributes = True


class CategoryDetailResponse(CategoryResponse):
    parent: Optional[CategoryResponse] = None
    children: List[CategoryResponse] = []


class CategoryList(BaseModel):
    categories: List[CategoryResponse]
    total: int


class CategoryOptionResponse(BaseModel):
    """Parent-selector entry."""
    id: int
    label: str
    level: str
    depth: int


class StorefrontCategoryResponse(BaseModel):
    """Category page payload: the category, its shop-by-category children, breadcrumbs."""
    category: CategoryResponse
    children: List[CategoryResponse]
    breadcrumbs: List[CategoryResponse]
