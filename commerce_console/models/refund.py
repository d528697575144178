"""
Refund Models

- Refund: one refund against an order, full or partial
- refund_status_history: append-only log of {status, timestamp, note, updated_by}

DB Compliance:
- DB-001: Numeric(10,2) for monetary fields, all in major currency units
  (refund_fee included; legacy rows stored it in cents)
- DB-003: FK with CASCADE for order
- DB-004: Indexes on order_id, status, created_at
- Timezone-aware UTC timestamps
"""
from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, Integer, String, DateTime, Text, JSON,
    Numeric, ForeignKey, Index, CheckConstraint
)
from sqlalchemy.orm import relationship

from commerce_console.core.database import Base


# =============================================================================
# ENUMS
# =============================================================================

class RefundStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class RefundType(str, PyEnum):
    FULL = "full"      # closes out the remaining order balance
    PARTIAL = "partial"  # leaves a remainder


class RefundMethod(str, PyEnum):
    ORIGINAL_PAYMENT = "original_payment"
    STORE_CREDIT = "store_credit"
    BANK_TRANSFER = "bank_transfer"


# =============================================================================
# REFUND
# =============================================================================

class Refund(Base):
    __tablename__ = "refunds"

    id = Column(Integer, primary_key=True, index=True)

    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"),
                      nullable=False, index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    reason = Column(Text, nullable=False)

    status = Column(String(20), default=RefundStatus.PENDING.value, nullable=False, index=True)
    refund_type = Column(String(10), nullable=False)
    refund_method = Column(String(30), nullable=False)
    refund_policy = Column(String(50), default="standard", nullable=False)

    refund_fee = Column(Numeric(10, 2), default=0)
    refund_currency = Column(String(3), default="USD", nullable=False)

    # [{product_id, quantity, amount, reason}]
    refund_items = Column(JSON, nullable=True)

    # Ordered, append-only: [{status, timestamp, note, updated_by}]
    refund_status_history = Column(JSON, nullable=False, default=list)

    notes = Column(Text)
    admin_notes = Column(Text)
    refunded_by = Column(String(100))
    customer_email = Column(String(255))
    customer_name = Column(String(255))

    # Payment gateway reference, filled in by whoever executes the payout
    refund_transaction_id = Column(String(100))

    created_at = Column(DateTime(timezone=True),
                        default=lambda: datetime.now(timezone.utc), index=True)
    updated_at = Column(DateTime(timezone=True),
                        default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc))
    completed_at = Column(DateTime(timezone=True), nullable=True)

    order = relationship("Order", back_populates="refunds")

    __table_args__ = (
        Index('ix_refunds_order_status', 'order_id', 'status'),
        CheckConstraint('amount >= 0', name='check_refund_amount_non_negative'),
        CheckConstraint('refund_fee >= 0', name='check_refund_fee_non_negative'),
    )


# =============================================================================
# VALID STATE TRANSITIONS
# =============================================================================

VALID_REFUND_TRANSITIONS = {
    RefundStatus.PENDING: [
        RefundStatus.APPROVED,
        RefundStatus.REJECTED,
        RefundStatus.COMPLETED,
    ],
    RefundStatus.APPROVED: [
        RefundStatus.COMPLETED,
        RefundStatus.REJECTED,
    ],
    # Terminal states
    RefundStatus.REJECTED: [],
    RefundStatus.COMPLETED: [],
}
