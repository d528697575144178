from commerce_console.models.taxonomy import Taxonomy, EMPTY
from commerce_console.models.order import (
    Order,
    ORDER_STATUS_PARTIAL_REFUNDED,
    ORDER_STATUS_FULL_REFUNDED,
    ORDER_STATUS_DELIVERED,
    REFUNDED_ORDER_STATUSES,
)
from commerce_console.models.refund import (
    Refund,
    RefundStatus,
    RefundType,
    RefundMethod,
    VALID_REFUND_TRANSITIONS,
)

__all__ = [
    "Taxonomy",
    "EMPTY",
    "Order",
    "ORDER_STATUS_PARTIAL_REFUNDED",
    "ORDER_STATUS_FULL_REFUNDED",
    "ORDER_STATUS_DELIVERED",
    "REFUNDED_ORDER_STATUSES",
    "Refund",
    "RefundStatus",
    "RefundType",
    "RefundMethod",
    "VALID_REFUND_TRANSITIONS",
]
