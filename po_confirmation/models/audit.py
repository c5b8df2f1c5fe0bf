from sqlalchemy import Column, String, ForeignKey
from po_confirmation.models.base import BaseModel

class Audit(BaseModel):
    __tablename__ = "audits"

    user_id = Column(ForeignKey("users.id"), nullable=True)

    action = Column(String(64), nullable=False)
    payload_hash = Column(String(128), nullable=False)
