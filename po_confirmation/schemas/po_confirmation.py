from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from po_confirmation.core.enums import ConfirmationStep, OrderStatus


class POConfirmationIn(BaseModel):
    not_test_order_confirmed: bool = False
    payment_terms_confirmed: bool = False


class POConfirmationOut(BaseModel):
    order_id: int
    step: ConfirmationStep
    status: OrderStatus
    not_test_order_confirmed_at: Optional[datetime] = None
    payment_terms_confirmed_at: Optional[datetime] = None
    client_po_confirmation_submitted_at: Optional[datetime] = None
