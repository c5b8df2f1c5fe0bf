from sqlalchemy import Column, String, Boolean, ForeignKey
from po_confirmation.models.base import BaseModel


class Notification(BaseModel):
    __tablename__ = "notifications"

    user_id = Column(ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(32), nullable=False)
    # i18n keys; rendering happens client-side
    title_key = Column(String(120), nullable=False)
    message_key = Column(String(120), nullable=False)
    action_url = Column(String(255), nullable=True)
    read = Column(Boolean, nullable=False, default=False)
