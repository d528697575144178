"""
Admin Refund API Routes

Sales > Refunds in the admin console:
- List refunds (by order and/or status) and open orders to refund against
- Order refund summary: total, refunded, remaining, allowed refund types
- Create a refund (validated against the order's remaining balance)
- Move a refund through its status lifecycle
- Delete (destructive admin override)
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from commerce_console.api.deps import get_admin_actor, get_refund_service
from commerce_console.core.error_handler import http_error
from commerce_console.core.exceptions import CommerceBaseError
from commerce_console.models import Order, Refund, RefundStatus
from commerce_console.schemas.refund import (
    RefundCreate,
    RefundStatusUpdate,
    RefundResponse,
    RefundList,
    OrderRefundSummary,
)
from commerce_console.services.refund_service import RefundService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin/refunds", tags=["admin-refunds"])


def format_refund_response(refund: Refund) -> RefundResponse:
    return RefundResponse.model_validate(refund)


@router.get("", response_model=RefundList)
async def list_refunds(
    order_id: Optional[int] = None,
    refund_status: Optional[RefundStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: RefundService = Depends(get_refund_service),
):
    refunds, total = await service.list_refunds(
        order_id=order_id, status=refund_status, limit=limit, offset=offset
    )
    return RefundList(
        refunds=[format_refund_response(r) for r in refunds],
        total=total,
    )


@router.get("/orders")
async def list_refundable_orders(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: RefundService = Depends(get_refund_service),
):
    """Orders that are not yet fully refunded, for the new-refund form."""
    orders: List[Order] = await service.refundable_orders(limit=limit, offset=offset)
    return {
        "orders": [
            {
                "id": o.id,
                "order_number": o.order_number,
                "status": o.status,
                "total_amount": float(o.total_amount),
                "customer_name": o.customer_name,
                "customer_email": o.customer_email,
            }
            for o in orders
        ]
    }


@router.get("/orders/{order_id}/summary", response_model=OrderRefundSummary)
async def get_order_refund_summary(
    order_id: int,
    service: RefundService = Depends(get_refund_service),
):
    try:
        summary = await service.order_summary(order_id)
    except CommerceBaseError as e:
        raise http_error(e)

    order = summary["order"]
    return OrderRefundSummary(
        order_id=order.id,
        order_number=order.order_number,
        order_status=order.status,
        total_amount=float(order.total_amount),
        refunded_amount=float(summary["refunded_amount"]),
        remaining=float(summary["remaining"]),
        allowed_types=summary["allowed_types"],
        refunds=[format_refund_response(r) for r in summary["refunds"]],
    )


@router.get("/{refund_id}", response_model=RefundResponse)
async def get_refund(
    refund_id: int,
    service: RefundService = Depends(get_refund_service),
):
    try:
        refund = await service.get_refund(refund_id)
    except CommerceBaseError as e:
        raise http_error(e)
    return format_refund_response(refund)


@router.post("", response_model=RefundResponse, status_code=status.HTTP_201_CREATED)
async def create_refund(
    data: RefundCreate,
    service: RefundService = Depends(get_refund_service),
    actor: str = Depends(get_admin_actor),
):
    """
    Create a refund in pending status.

    400 with the reason when the amount/type does not reconcile with the
    order; the expected amount is included for full refunds.
    """
    try:
        refund = await service.create_refund(data, actor)
    except CommerceBaseError as e:
        raise http_error(e)
    return format_refund_response(refund)


@router.patch("/{refund_id}/status", response_model=RefundResponse)
async def update_refund_status(
    refund_id: int,
    data: RefundStatusUpdate,
    service: RefundService = Depends(get_refund_service),
    actor: str = Depends(get_admin_actor),
):
    try:
        refund = await service.update_status(refund_id, data, actor)
    except CommerceBaseError as e:
        raise http_error(e)
    return format_refund_response(refund)


@router.delete("/{refund_id}")
async def delete_refund(
    refund_id: int,
    service: RefundService = Depends(get_refund_service),
    actor: str = Depends(get_admin_actor),
):
    try:
        await service.delete_refund(refund_id, actor)
    except CommerceBaseError as e:
        raise http_error(e)
    return {"message": "Refund deleted", "id": refund_id}
