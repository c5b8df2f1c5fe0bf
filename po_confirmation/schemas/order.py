from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from po_confirmation.core.enums import OrderStatus


class AcceptQuoteIn(BaseModel):
    quote_id: str
    supplier_id: Optional[int] = None
    amount: float = Field(gt=0)


class OrderCreate(BaseModel):
    # Defaults to the caller; anything else is refused by the store.
    client_id: Optional[int] = None
    supplier_id: Optional[int] = None
    quote_id: Optional[str] = None
    amount: float = Field(gt=0)


class OrderUpdate(BaseModel):
    """Direct client edit. Every column is accepted here; the store decides."""
    status: Optional[OrderStatus] = None
    amount: Optional[float] = None
    supplier_id: Optional[int] = None
    client_id: Optional[int] = None
    not_test_order_confirmed_at: Optional[datetime] = None
    payment_terms_confirmed_at: Optional[datetime] = None
    client_po_confirmation_submitted_at: Optional[datetime] = None
    client_po_uploaded: Optional[bool] = None
    payment_reference: Optional[str] = None
    payment_notes: Optional[str] = None


class PaymentSubmission(BaseModel):
    payment_reference: str = Field(min_length=1, max_length=120)
    payment_notes: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderOut(BaseModel):
    id: int
    client_id: int
    supplier_id: Optional[int] = None
    quote_id: Optional[str] = None
    status: OrderStatus
    amount: float
    not_test_order_confirmed_at: Optional[datetime] = None
    payment_terms_confirmed_at: Optional[datetime] = None
    client_po_confirmation_submitted_at: Optional[datetime] = None
    client_po_uploaded: bool
    payment_reference: Optional[str] = None
    payment_notes: Optional[str] = None
    payment_submitted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
