from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from po_confirmation.api.deps import get_db
from po_confirmation.authz.context import CallerContext
from po_confirmation.core.audit_log import log_audit
from po_confirmation.core.auth_utils import check_not_found
from po_confirmation.core.enums import AuditAction
from po_confirmation.core.response_builders import build_order_response, build_user_response
from po_confirmation.core.security import require_admin
from po_confirmation.db.routines import admin_set_order_status
from po_confirmation.models.user import User
from po_confirmation.schemas.order import OrderOut, OrderStatusUpdate
from po_confirmation.schemas.user import UserOut, UserProfileUpdate

router = APIRouter(prefix="/admin", tags=["admin"])


@router.patch("/users/{user_id}", response_model=UserOut)
async def update_user(
    user_id: int,
    payload: UserProfileUpdate,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(require_admin),
):
    res = await db.execute(select(User).where(User.id == user_id))
    user = res.scalars().first()
    check_not_found(user, "User", user_id)

    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(user, field, value)

    log_audit(db, caller.principal_id, AuditAction.UPDATE_PROFILE, {"user_id": user_id, **changes})
    await db.commit()
    return build_user_response(user)


@router.patch("/orders/{order_id}/status", response_model=OrderOut)
async def set_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(require_admin),
):
    order = await admin_set_order_status(db, order_id, payload.status)
    log_audit(db, caller.principal_id, AuditAction.SET_ORDER_STATUS, {"order_id": order_id, "status": payload.status})
    await db.commit()
    return build_order_response(order)
