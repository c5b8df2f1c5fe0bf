"""Row rules for writes to ``users``."""
from typing import Any, Mapping, Optional

from po_confirmation.authz.context import CallerContext, Decision
from po_confirmation.core.enums import UserRole

PROTECTED_PROFILE_FIELDS = (
    "role",
    "verified",
    "status",
    "kyc_status",
    "public_id",
    "date_joined",
    "credit_limit",
)

# Written by trusted routines (quote acceptance, admin adjustments).
FINANCIAL_COUNTERS = ("credit_used", "current_balance", "rating")


def authorize_user_update(
    ctx: CallerContext,
    caller_role: Optional[UserRole],
    old: Mapping[str, Any],
    new: Mapping[str, Any],
    protect_financial_counters: bool = False,
) -> Decision:
    """Profile guard evaluated before every ``users`` update.

    Order matters: system trust, then no principal at all, then a fresh
    ADMIN role all pass before any field is compared.
    """
    if ctx.is_system:
        return Decision.allow()

    if ctx.principal_id is None:
        return Decision.allow()

    if caller_role == UserRole.ADMIN:
        return Decision.allow()

    guarded = PROTECTED_PROFILE_FIELDS
    if protect_financial_counters:
        guarded = guarded + FINANCIAL_COUNTERS

    touched = [field for field in guarded if old.get(field) != new.get(field)]
    if touched:
        return Decision.deny(
            f"Only safe profile fields can be updated by users (blocked: {', '.join(touched)})"
        )
    return Decision.allow()


def authorize_user_self_update(
    ctx: CallerContext,
    old: Mapping[str, Any],
    new: Mapping[str, Any],
) -> Decision:
    if ctx.principal_id is None or old.get("id") != ctx.principal_id or new.get("id") != ctx.principal_id:
        return Decision.deny("users can only update their own profile")
    return Decision.allow()


def authorize_user_admin_update(caller_role: Optional[UserRole]) -> Decision:
    if caller_role != UserRole.ADMIN:
        return Decision.deny("admin access required")
    return Decision.allow()
