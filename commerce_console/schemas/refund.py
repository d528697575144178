"""
Refund schemas

Amounts arrive and leave as major currency units. Sign and balance checks
belong to refund reconciliation, so amount is not range-constrained here.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Union
from pydantic import BaseModel, Field

from commerce_console.models.refund import RefundStatus, RefundType, RefundMethod


# =============================================================
# Request Schemas
# =============================================================

class RefundItem(BaseModel):
    product_id: Union[int, str]
    quantity: int = Field(1, ge=1)
    amount: Decimal = Field(..., ge=0)
    reason: Optional[str] = Field(None, max_length=500)


class RefundCreate(BaseModel):
    order_id: int = Field(..., gt=0)
    refund_type: RefundType
    amount: Decimal
    reason: str = Field(..., min_length=1, max_length=2000)
    refund_method: RefundMethod = RefundMethod.ORIGINAL_PAYMENT
    refund_policy: str = Field("standard", max_length=50)
    refund_fee: Decimal = Field(Decimal("0"), ge=0)
    refund_currency: Optional[str] = Field(None, min_length=3, max_length=3)
    refund_items: Optional[List[RefundItem]] = None
    notes: Optional[str] = None
    admin_notes: Optional[str] = None
    customer_email: Optional[str] = Field(None, max_length=255)
    customer_name: Optional[str] = Field(None, max_length=255)


class RefundStatusUpdate(BaseModel):
    status: RefundStatus
    note: Optional[str] = Field(None, max_length=1000)


# =============================================================
# Response Schemas
# =============================================================

class StatusHistoryEntry(BaseModel):
    status: str
    timestamp: str
    note: Optional[str] = None
    updated_by: Optional[str] = None


class RefundResponse(BaseModel):
    id: int
    order_id: int
    amount: float
    reason: str
    status: str
    refund_type: str
    refund_method: str
    refund_policy: Optional[str] = None
    refund_fee: Optional[float] = 0.0
    refund_currency: str
    refund_items: Optional[List[dict]] = None
    refund_status_history: List[StatusHistoryEntry] = []
    notes: Optional[str] = None
    admin_notes: Optional[str] = None
    refunded_by: Optional[str] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    refund_transaction_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RefundList(BaseModel):
    refunds: List[RefundResponse]
    total: int


class OrderRefundSummary(BaseModel):
    """What is left to refund on an order and which refund types remain open."""
    order_id: int
    order_number: str
    order_status: str
    total_amount: float
    refunded_amount: float
    remaining: float
    allowed_types: List[str]
    refunds: List[RefundResponse]
