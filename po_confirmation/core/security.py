from datetime import datetime, timezone, timedelta
from jose import jwt, JWTError
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.future import select
from po_confirmation.authz.context import CallerContext
from po_confirmation.db.session import get_session_factory, open_session
from po_confirmation.models.user import User
from po_confirmation.core.config import settings
from po_confirmation.core.enums import UserRole, UserStatus

JWT_ALGORITHM = "HS256"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")


pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False

def create_access_token(subject: str, role: str, expires_minutes: int | None = None) -> str:
    expires = expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    expire_dt = datetime.now(timezone.utc) + timedelta(minutes=expires)
    to_encode = {"sub": str(subject), "role": str(role), "exp": expire_dt}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=JWT_ALGORITHM)

async def get_current_caller(
    token: str = Depends(oauth2_scheme),
    factory: async_sessionmaker = Depends(get_session_factory),
) -> CallerContext:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[JWT_ALGORITHM])
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    async with open_session(factory, CallerContext.anonymous()) as db:
        res = await db.execute(select(User.id, User.role, User.status).where(User.id == user_id))
        row = res.first()
    if not row:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if row.status != UserStatus.ACTIVE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is not active")
    return CallerContext.for_user(row.id, row.role)

def require_admin(caller: CallerContext = Depends(get_current_caller)) -> CallerContext:
    if caller.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Admin access required")
    return caller
