"""Caller identity and the decision type shared by every write rule."""
from dataclasses import dataclass, replace
from typing import Optional

from po_confirmation.core.enums import TrustLevel, UserRole


@dataclass(frozen=True)
class CallerContext:
    """Who is writing, and with what trust.

    ``role`` is what the token claimed; rules that care about roles look the
    role up again in the store instead of trusting this value.
    """
    principal_id: Optional[int]
    role: Optional[UserRole] = None
    trust_level: TrustLevel = TrustLevel.SESSION

    @classmethod
    def for_user(cls, principal_id: int, role: Optional[UserRole] = None) -> "CallerContext":
        return cls(principal_id=int(principal_id), role=role)

    @classmethod
    def anonymous(cls) -> "CallerContext":
        return cls(principal_id=None)

    @classmethod
    def system(cls) -> "CallerContext":
        return cls(principal_id=None, trust_level=TrustLevel.SYSTEM)

    def elevated(self) -> "CallerContext":
        # Same principal, so routines can still check who called them.
        return replace(self, trust_level=TrustLevel.SYSTEM)

    @property
    def is_system(self) -> bool:
        return self.trust_level == TrustLevel.SYSTEM


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> "Decision":
        return cls(allowed=False, reason=reason)

    def __bool__(self) -> bool:
        return self.allowed
