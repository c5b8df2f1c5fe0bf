from sqlalchemy import Column, String, Boolean, Float, DateTime, Enum
from po_confirmation.models.base import BaseModel, utcnow
from po_confirmation.core.enums import UserRole, UserStatus, KycStatus


class User(BaseModel):
    __tablename__ = "users"
    username = Column(String(64), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(UserRole, name="user_role"), nullable=False, default=UserRole.CLIENT)

    # Sensitive: only admins and trusted routines may change these.
    verified = Column(Boolean, nullable=False, default=False)
    status = Column(Enum(UserStatus, name="user_status"), nullable=False, default=UserStatus.ACTIVE)
    kyc_status = Column(Enum(KycStatus, name="kyc_status"), nullable=False, default=KycStatus.NOT_STARTED)
    public_id = Column(String(32), unique=True, nullable=True)
    date_joined = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    credit_limit = Column(Float, nullable=False, default=0.0)

    credit_used = Column(Float, nullable=False, default=0.0)
    current_balance = Column(Float, nullable=False, default=0.0)
    rating = Column(Float, nullable=True)

    full_name = Column(String(120), nullable=True)
    company_name = Column(String(120), nullable=True)
    phone = Column(String(40), nullable=True)
