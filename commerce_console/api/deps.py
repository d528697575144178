"""
API dependencies

Authentication happens upstream of this service; the gateway forwards the
authenticated admin's name in X-Admin-User. It is recorded on refunds and
status history, never trusted for authorization.
"""
from typing import Optional
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from commerce_console.core.database import get_db
from commerce_console.services.refund_service import RefundService
from commerce_console.services.taxonomy_service import TaxonomyService

DEFAULT_ACTOR = "admin"


def get_admin_actor(
    x_admin_user: Optional[str] = Header(None, alias="X-Admin-User"),
) -> str:
    """Name of the acting admin, for audit fields."""
    if x_admin_user and x_admin_user.strip():
        return x_admin_user.strip()[:100]
    return DEFAULT_ACTOR


def get_taxonomy_service(db: AsyncSession = Depends(get_db)) -> TaxonomyService:
    return TaxonomyService(db)


def get_refund_service(db: AsyncSession = Depends(get_db)) -> RefundService:
    return RefundService(db)
