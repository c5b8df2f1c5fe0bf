from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from po_confirmation.api.deps import get_db
from po_confirmation.authz.context import CallerContext
from po_confirmation.core.audit_log import log_audit
from po_confirmation.core.auth_utils import check_not_found
from po_confirmation.core.enums import AuditAction
from po_confirmation.core.response_builders import build_user_response
from po_confirmation.core.security import get_current_caller
from po_confirmation.models.user import User
from po_confirmation.schemas.user import UserOut, UserProfileUpdate

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserOut)
async def get_me(
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    res = await db.execute(select(User).where(User.id == caller.principal_id))
    user = res.scalars().first()
    check_not_found(user, "User", caller.principal_id)
    return build_user_response(user)


@router.patch("/me", response_model=UserOut)
async def update_me(
    payload: UserProfileUpdate,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    """Direct profile edit. The profile guard rejects protected fields."""
    res = await db.execute(select(User).where(User.id == caller.principal_id))
    user = res.scalars().first()
    check_not_found(user, "User", caller.principal_id)

    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(user, field, value)

    log_audit(db, caller.principal_id, AuditAction.UPDATE_PROFILE, changes)
    await db.commit()
    return build_user_response(user)
