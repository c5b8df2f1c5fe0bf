from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class NotificationOut(BaseModel):
    id: int
    type: str
    title_key: str
    message_key: str
    action_url: Optional[str] = None
    read: bool
    created_at: datetime
