from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from po_confirmation.api.deps import get_anonymous_db
from po_confirmation.authz.context import CallerContext
from po_confirmation.schemas.auth import RegisterIn, TokenOut
from po_confirmation.models.user import User
from po_confirmation.db.routines import register_user
from po_confirmation.db.session import get_session_factory, write_scope
from po_confirmation.core.security import create_access_token, hash_password, verify_password
from po_confirmation.core.enums import AuditAction, UserStatus
from po_confirmation.core.audit_log import log_audit

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=TokenOut)
async def register(payload: RegisterIn, db: AsyncSession = Depends(get_anonymous_db)):
    res = await db.execute(select(User.id).where(User.username == payload.username))
    if res.first():
        raise HTTPException(status_code=400, detail="Username already taken")

    new_user = await register_user(
        db,
        username=payload.username,
        password_hash=hash_password(payload.password),
        full_name=payload.full_name,
        company_name=payload.company_name,
        phone=payload.phone,
    )
    log_audit(db, new_user.id, AuditAction.REGISTER, {"username": payload.username})
    await db.commit()

    token = create_access_token(str(new_user.id), new_user.role)
    return {"access_token": token}


@router.post("/login", response_model=TokenOut)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_anonymous_db),
    factory: async_sessionmaker = Depends(get_session_factory),
):
    res = await db.execute(select(User).where(User.username == form_data.username))
    user = res.scalars().first()
    if not user or not verify_password(form_data.password, user.password_hash):
        raise HTTPException(status_code=400, detail="Invalid credentials")
    if user.status != UserStatus.ACTIVE:
        raise HTTPException(status_code=403, detail="Account is not active")

    async with write_scope(factory, CallerContext.for_user(user.id, user.role)) as audit_db:
        log_audit(audit_db, user.id, AuditAction.LOGIN, {"username": form_data.username})

    token = create_access_token(str(user.id), user.role)
    return {"access_token": token}
