from sqlalchemy import Column, String, Float, Boolean, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from po_confirmation.models.base import BaseModel
from po_confirmation.core.enums import OrderStatus

class Order(BaseModel):
    __tablename__ = "orders"

    client_id = Column(ForeignKey("users.id"), nullable=False, index=True)
    supplier_id = Column(ForeignKey("users.id"), nullable=True)
    quote_id = Column(String(64), nullable=True)

    client = relationship("User", foreign_keys=[client_id], backref="orders")

    status = Column(Enum(OrderStatus, name="order_status"), default=OrderStatus.DRAFT, nullable=False)
    amount = Column(Float, nullable=False)

    not_test_order_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    payment_terms_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    client_po_confirmation_submitted_at = Column(DateTime(timezone=True), nullable=True)
    client_po_uploaded = Column(Boolean, nullable=False, default=False)

    payment_reference = Column(String(120), nullable=True)
    payment_notes = Column(String, nullable=True)
    payment_submitted_at = Column(DateTime(timezone=True), nullable=True)
