"""
Order model

Only the financial state refund reconciliation reads: the order total and
a status that moves to partial_refunded / full_refunded as refunds land
and back once every refund is rejected or removed.

DB-001: Numeric(12,2) for monetary fields, major currency units.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Numeric
from sqlalchemy.orm import relationship

from commerce_console.core.database import Base

ORDER_STATUS_PARTIAL_REFUNDED = "partial_refunded"
ORDER_STATUS_FULL_REFUNDED = "full_refunded"
REFUNDED_ORDER_STATUSES = (ORDER_STATUS_PARTIAL_REFUNDED, ORDER_STATUS_FULL_REFUNDED)

# Restored when an order without a recorded pre-refund status loses all its refunds
ORDER_STATUS_DELIVERED = "delivered"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)

    order_number = Column(String(50), unique=True, index=True, nullable=False)
    status = Column(String(30), default="pending", nullable=False, index=True)
    # Status before the first refund landed; restored once no refund is left open
    pre_refund_status = Column(String(30))

    total_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), default="USD", nullable=False)

    customer_email = Column(String(255))
    customer_name = Column(String(255))

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    refunds = relationship("Refund", back_populates="order", order_by="Refund.created_at")
