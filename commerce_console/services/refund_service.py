"""
Refund Service

Persistence around refund reconciliation.

Enforces:
- Check-then-insert in one transaction with the order row locked
  (SELECT ... FOR UPDATE) so concurrent refunds see each other's amounts
- Status transitions per VALID_REFUND_TRANSITIONS, each one appended to
  refund_status_history
- Order status follows refunds: partial_refunded / full_refunded, and back
  to its pre-refund status once every refund is rejected or deleted

Reconciliation rules themselves live in refund_reconciliation.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from commerce_console.core.config import settings
from commerce_console.core.exceptions import (
    InvalidRefundTransitionError,
    OrderNotFoundError,
    RefundNotFoundError,
    RefundValidationError,
)
from commerce_console.core.utils import to_money, utcnow
from commerce_console.models import (
    Order,
    Refund,
    RefundStatus,
    RefundType,
    VALID_REFUND_TRANSITIONS,
    ORDER_STATUS_FULL_REFUNDED,
    ORDER_STATUS_PARTIAL_REFUNDED,
    REFUNDED_ORDER_STATUSES,
)
from commerce_console.schemas.refund import RefundCreate, RefundStatusUpdate
from commerce_console.services.refund_reconciliation import (
    RefundDecision,
    allowed_refund_types,
    append_status_history,
    derive_order_status,
    history_entry,
    prior_refunded_sum,
    refundable_remaining,
    validate_new_refund,
)

logger = logging.getLogger(__name__)


class RefundService:
    """Refund creation, status changes and order balance lookups."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================
    # Lookups
    # =========================================================

    async def get_order(self, order_id: int, lock: bool = False) -> Order:
        query = select(Order).where(Order.id == order_id)
        if lock:
            query = query.with_for_update()  # Serializes refunds per order
        result = await self.db.execute(query)
        order = result.scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def get_refund(self, refund_id: int) -> Refund:
        result = await self.db.execute(select(Refund).where(Refund.id == refund_id))
        refund = result.scalar_one_or_none()
        if refund is None:
            raise RefundNotFoundError(refund_id)
        return refund

    async def sum_prior_refunds(self, order_id: int) -> Decimal:
        """Sum of non-rejected refund amounts already recorded for the order."""
        result = await self.db.execute(
            select(func.coalesce(func.sum(Refund.amount), 0))
            .where(Refund.order_id == order_id)
            .where(Refund.status != RefundStatus.REJECTED.value)
        )
        return to_money(result.scalar())

    async def list_refunds(
        self,
        order_id: Optional[int] = None,
        status: Optional[RefundStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Refund], int]:
        query = select(Refund)
        count_query = select(func.count(Refund.id))
        if order_id is not None:
            query = query.where(Refund.order_id == order_id)
            count_query = count_query.where(Refund.order_id == order_id)
        if status is not None:
            query = query.where(Refund.status == status.value)
            count_query = count_query.where(Refund.status == status.value)

        query = query.order_by(Refund.created_at.desc()).limit(limit).offset(offset)
        result = await self.db.execute(query)
        refunds = list(result.scalars().all())

        total_result = await self.db.execute(count_query)
        return refunds, total_result.scalar() or 0

    async def refundable_orders(self, limit: int = 50, offset: int = 0) -> List[Order]:
        """Orders a new refund may still target (not fully refunded)."""
        result = await self.db.execute(
            select(Order)
            .where(Order.status != ORDER_STATUS_FULL_REFUNDED)
            .order_by(Order.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def order_summary(self, order_id: int) -> Dict[str, Any]:
        """Order total, refunded amount, what remains and which types are still allowed."""
        order = await self.get_order(order_id)
        result = await self.db.execute(
            select(Refund)
            .where(Refund.order_id == order_id)
            .order_by(Refund.created_at)
        )
        refunds = list(result.scalars().all())

        refunded = prior_refunded_sum(refunds)
        remaining = refundable_remaining(order.total_amount, refunded)
        return {
            "order": order,
            "refunds": refunds,
            "refunded_amount": refunded,
            "remaining": remaining,
            "allowed_types": allowed_refund_types(order.status, refunded, remaining),
        }

    # =========================================================
    # Writes
    # =========================================================

    async def create_refund(self, data: RefundCreate, actor: str) -> Refund:
        """
        Validate and record a refund.

        Raises RefundValidationError (carrying the RefundDecision) when the
        request does not reconcile with the order.
        """
        order = await self.get_order(data.order_id, lock=True)
        prior = await self.sum_prior_refunds(order.id)

        decision = validate_new_refund(
            order,
            prior,
            data.refund_type,
            data.amount,
            tolerance=settings.REFUND_AMOUNT_TOLERANCE,
        )
        if not decision.accepted:
            logger.info(
                f"Refund rejected for order {order.id} "
                f"({data.refund_type.value} {data.amount}): {decision.reason}"
            )
            raise RefundValidationError(decision.reason, decision=decision)

        fee = to_money(data.refund_fee)
        if fee > decision.amount:
            rejected = RefundDecision.reject(
                decision.amount, decision.remaining,
                "Refund fee cannot exceed the refund amount",
            )
            raise RefundValidationError(rejected.reason, decision=rejected)

        now = utcnow()
        refund = Refund(
            order_id=order.id,
            amount=decision.amount,
            reason=data.reason,
            status=RefundStatus.PENDING.value,
            refund_type=data.refund_type.value,
            refund_method=data.refund_method.value,
            refund_policy=data.refund_policy,
            refund_fee=fee,
            refund_currency=(
                data.refund_currency or order.currency or settings.REFUND_DEFAULT_CURRENCY
            ).upper(),
            refund_items=(
                [item.model_dump(mode="json") for item in data.refund_items]
                if data.refund_items else None
            ),
            notes=data.notes,
            admin_notes=data.admin_notes,
            refunded_by=actor,
            customer_email=data.customer_email or order.customer_email,
            customer_name=data.customer_name or order.customer_name,
            refund_status_history=[
                history_entry(RefundStatus.PENDING, "Refund created", "system", now)
            ],
            created_at=now,
            updated_at=now,
        )

        if order.status not in REFUNDED_ORDER_STATUSES:
            order.pre_refund_status = order.status
        order.status = (
            ORDER_STATUS_FULL_REFUNDED
            if data.refund_type == RefundType.FULL
            else ORDER_STATUS_PARTIAL_REFUNDED
        )

        self.db.add(refund)
        await self.db.flush()

        logger.info(
            f"Refund {refund.id} created for order {order.id}: "
            f"{refund.refund_type} {decision.amount} by {actor} "
            f"(remaining before: {decision.remaining})"
        )
        return refund

    async def update_status(
        self, refund_id: int, data: RefundStatusUpdate, actor: str
    ) -> Refund:
        refund = await self.get_refund(refund_id)
        current = RefundStatus(refund.status)
        requested = data.status

        if requested not in VALID_REFUND_TRANSITIONS[current]:
            raise InvalidRefundTransitionError(current.value, requested.value)

        append_status_history(refund, requested, note=data.note, actor=actor)
        refund.updated_at = utcnow()
        await self.db.flush()
        logger.info(f"Refund {refund_id} {current.value} -> {requested.value} by {actor}")

        if requested == RefundStatus.REJECTED:
            await self.sync_order_status(refund.order_id)
        return refund

    async def delete_refund(self, refund_id: int, actor: str) -> None:
        """Hard delete. Admin override outside the normal refund lifecycle."""
        refund = await self.get_refund(refund_id)
        await self.db.delete(refund)
        await self.db.flush()
        logger.warning(
            f"Refund {refund_id} (order {refund.order_id}, {refund.amount}) "
            f"deleted by {actor}"
        )
        await self.sync_order_status(refund.order_id)

    async def sync_order_status(self, order_id: int) -> Order:
        """Re-derive the order status from its refunds that are still open."""
        order = await self.get_order(order_id, lock=True)
        result = await self.db.execute(
            select(Refund.refund_type)
            .where(Refund.order_id == order_id)
            .where(Refund.status != RefundStatus.REJECTED.value)
        )
        status = derive_order_status(
            order.status, order.pre_refund_status, result.scalars().all()
        )
        if status != order.status:
            logger.info(f"Order {order_id} status {order.status} -> {status}")
            order.status = status
            await self.db.flush()
        return order
