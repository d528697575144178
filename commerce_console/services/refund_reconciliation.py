"""
Refund Reconciliation

Pure validation of refund requests against an order's financial state.

Rules (evaluated in order):
- No full refund once the order is partial_refunded or any refund exists
- Nothing refundable left -> reject
- Full refund must equal the remaining balance (within tolerance)
- Partial refund must be >= 0 and at least one tolerance step below the
  remaining balance, so a "partial" can never close out the order

All money is Decimal in major currency units. Nothing here does I/O; the
refund service loads the order, sums prior refunds and persists the result.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from commerce_console.core.utils import to_money, utcnow
from commerce_console.models.order import (
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_FULL_REFUNDED,
    ORDER_STATUS_PARTIAL_REFUNDED,
    REFUNDED_ORDER_STATUSES,
)
from commerce_console.models.refund import RefundStatus, RefundType

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = Decimal("0.01")

FULL_AFTER_PARTIAL_REASON = "Cannot select full refund for partially refunded order"


@dataclass(frozen=True)
class RefundDecision:
    """Outcome of validate_new_refund. `reason` is set only on rejection."""
    accepted: bool
    amount: Decimal
    remaining: Decimal
    reason: Optional[str] = None

    @classmethod
    def accept(cls, amount: Decimal, remaining: Decimal) -> "RefundDecision":
        return cls(accepted=True, amount=amount, remaining=remaining)

    @classmethod
    def reject(cls, amount: Decimal, remaining: Decimal, reason: str) -> "RefundDecision":
        return cls(accepted=False, amount=amount, remaining=remaining, reason=reason)


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def refundable_remaining(order_total: Any, prior_refunded_sum: Any) -> Decimal:
    """Order total minus prior non-rejected refunds, floored at zero."""
    remaining = to_money(order_total) - to_money(prior_refunded_sum)
    return max(remaining, Decimal("0.00"))


def prior_refunded_sum(refunds: Iterable[Any]) -> Decimal:
    """Sum of amounts over refunds that were not rejected."""
    total = Decimal("0.00")
    for refund in refunds:
        if _enum_value(refund.status) == RefundStatus.REJECTED.value:
            continue
        total += to_money(refund.amount)
    return total


def allowed_refund_types(
    order_status: Optional[str],
    prior_sum: Any,
    remaining: Any,
) -> List[str]:
    """Refund types an admin may still pick for this order."""
    if to_money(remaining) <= 0:
        return []
    if order_status == ORDER_STATUS_PARTIAL_REFUNDED or to_money(prior_sum) > 0:
        return [RefundType.PARTIAL.value]
    return [RefundType.FULL.value, RefundType.PARTIAL.value]


def validate_new_refund(
    order: Any,
    prior_refunded_sum: Any,
    requested_type: Any,
    requested_amount: Any,
    tolerance: Optional[Decimal] = None,
) -> RefundDecision:
    """
    Validate a new refund against the order and its prior refunds.

    `order` needs `total_amount` and `status`. Returns a RefundDecision; the
    caller decides how to report a rejection.
    """
    tolerance = AMOUNT_TOLERANCE if tolerance is None else Decimal(str(tolerance))
    prior = to_money(prior_refunded_sum)
    remaining = refundable_remaining(order.total_amount, prior)

    try:
        amount = to_money(requested_amount)
    except (InvalidOperation, ValueError, TypeError):
        return RefundDecision.reject(
            Decimal("0.00"), remaining, "Refund amount must be a number"
        )

    refund_type = _enum_value(requested_type)
    if refund_type not in (RefundType.FULL.value, RefundType.PARTIAL.value):
        return RefundDecision.reject(
            amount, remaining, f"Invalid refund type: {refund_type}"
        )

    if refund_type == RefundType.FULL.value:
        if order.status == ORDER_STATUS_PARTIAL_REFUNDED or prior > 0:
            return RefundDecision.reject(amount, remaining, FULL_AFTER_PARTIAL_REASON)

    if remaining <= 0:
        return RefundDecision.reject(
            amount, remaining, "This order has already been fully refunded"
        )

    if refund_type == RefundType.FULL.value:
        if abs(amount - remaining) > tolerance:
            return RefundDecision.reject(
                amount, remaining, f"Full refund amount must be {remaining:.2f}"
            )
        return RefundDecision.accept(remaining, remaining)

    if amount < 0:
        return RefundDecision.reject(
            amount, remaining, "Refund amount cannot be negative"
        )
    if amount > remaining - tolerance:
        return RefundDecision.reject(
            amount,
            remaining,
            f"Partial refund amount must be less than the remaining {remaining:.2f}",
        )

    return RefundDecision.accept(amount, remaining)


# =============================================================================
# STATUS HISTORY
# =============================================================================

def history_entry(
    status: Any,
    note: Optional[str] = None,
    actor: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> Dict[str, str]:
    status = _enum_value(status)
    return {
        "status": status,
        "timestamp": (timestamp or utcnow()).isoformat(),
        "note": note or f"Refund marked as {status}",
        "updated_by": actor or "system",
    }


def append_status_history(
    refund: Any,
    new_status: Any,
    note: Optional[str] = None,
    actor: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, str]:
    """
    Move `refund` to `new_status` and log the change.

    The history list is replaced with a copy plus the new entry; earlier
    entries are never touched. Moving to completed stamps completed_at.
    Transition rules are enforced by the caller.
    """
    now = now or utcnow()
    entry = history_entry(new_status, note=note, actor=actor, timestamp=now)

    refund.refund_status_history = [*(refund.refund_status_history or []), entry]
    refund.status = entry["status"]
    if entry["status"] == RefundStatus.COMPLETED.value:
        refund.completed_at = now

    return entry


def derive_order_status(
    current: Optional[str],
    pre_refund_status: Optional[str],
    open_refund_types: Iterable[Any],
) -> Optional[str]:
    """
    Order status implied by the refund types still open (not rejected).

    A full refund outranks partials. With no refund left, a refunded order
    goes back to the status it had before its first refund.
    """
    types = {_enum_value(t) for t in open_refund_types}
    if RefundType.FULL.value in types:
        return ORDER_STATUS_FULL_REFUNDED
    if RefundType.PARTIAL.value in types:
        return ORDER_STATUS_PARTIAL_REFUNDED
    if current in REFUNDED_ORDER_STATUSES:
        return pre_refund_status or ORDER_STATUS_DELIVERED
    return current
