"""Notification queue writes. Delivery and rendering happen elsewhere."""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from po_confirmation.authz.context import CallerContext
from po_confirmation.db.session import write_scope
from po_confirmation.models.notification import Notification
from po_confirmation.models.order import Order

logger = logging.getLogger(__name__)

ORDER_TAB_URL = "/app?tab=orders"


def stage_notification(
    db: AsyncSession,
    user_id: int,
    type: str,
    title_key: str,
    message_key: str,
    action_url: Optional[str] = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=type,
        title_key=title_key,
        message_key=message_key,
        action_url=action_url,
    )
    db.add(notification)
    return notification


async def enqueue_po_submitted(factory: async_sessionmaker, caller: CallerContext, order: Order) -> Notification:
    async with write_scope(factory, caller) as db:
        notification = stage_notification(
            db,
            user_id=order.client_id,
            type="order",
            title_key="notifications.poSubmittedTitle",
            message_key="notifications.poSubmittedMessage",
            action_url=ORDER_TAB_URL,
        )
    logger.info(f"Queued PO submitted notification for order {order.id}")
    return notification
