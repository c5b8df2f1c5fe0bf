from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import List

from po_confirmation.api.deps import get_db
from po_confirmation.authz.context import CallerContext
from po_confirmation.core.response_builders import build_notification_response_list
from po_confirmation.core.security import get_current_caller
from po_confirmation.models.notification import Notification
from po_confirmation.schemas.notification import NotificationOut

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/", response_model=List[NotificationOut])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    q = select(Notification).where(Notification.user_id == caller.principal_id)
    if unread_only:
        q = q.where(Notification.read.is_(False))
    q = q.order_by(Notification.id.desc()).limit(limit).offset(offset)
    res = await db.execute(q)
    return build_notification_response_list(res.scalars().all())
