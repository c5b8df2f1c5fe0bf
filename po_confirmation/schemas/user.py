from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from po_confirmation.core.enums import UserRole, UserStatus, KycStatus


class UserOut(BaseModel):
    id: int
    username: str
    role: UserRole
    verified: bool
    status: UserStatus
    kyc_status: KycStatus
    public_id: Optional[str] = None
    date_joined: datetime
    credit_limit: float
    credit_used: float
    current_balance: float
    rating: Optional[float] = None
    full_name: Optional[str] = None
    company_name: Optional[str] = None
    phone: Optional[str] = None


class UserProfileUpdate(BaseModel):
    """Any profile column may be sent; the profile guard rejects the
    sensitive ones unless the caller is an admin."""
    full_name: Optional[str] = None
    company_name: Optional[str] = None
    phone: Optional[str] = None
    credit_used: Optional[float] = None
    current_balance: Optional[float] = None
    rating: Optional[float] = None
    role: Optional[UserRole] = None
    verified: Optional[bool] = None
    status: Optional[UserStatus] = None
    kyc_status: Optional[KycStatus] = None
    public_id: Optional[str] = None
    date_joined: Optional[datetime] = None
    credit_limit: Optional[float] = None
