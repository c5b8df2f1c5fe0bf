"""Row rules for client writes to ``orders``.

Trusted routines never reach these functions: system trust bypasses row
policies entirely (see ``po_confirmation.db.guard``).
"""
from typing import AbstractSet, Any, Mapping, Optional

from po_confirmation.authz.context import CallerContext, Decision
from po_confirmation.core.enums import UserRole

CLIENT_WRITABLE_ORDER_COLUMNS = frozenset({
    "not_test_order_confirmed_at",
    "payment_terms_confirmed_at",
    "client_po_confirmation_submitted_at",
    "client_po_uploaded",
    "payment_reference",
    "payment_notes",
    "payment_submitted_at",
})


def authorize_order_insert(
    ctx: CallerContext,
    caller_role: Optional[UserRole],
    proposed: Mapping[str, Any],
) -> Decision:
    if ctx.principal_id is None or proposed.get("client_id") != ctx.principal_id:
        return Decision.deny("orders can only be created for the acting client")
    if caller_role != UserRole.CLIENT:
        return Decision.deny("only clients can create orders")
    return Decision.allow()


def authorize_order_update(
    ctx: CallerContext,
    current: Mapping[str, Any],
    proposed: Mapping[str, Any],
    changed: AbstractSet[str],
    enforce_allowlist: bool = True,
) -> Decision:
    """Decide a client update of one order row.

    ``current`` must be the row as it is in the store at evaluation time.
    Comparing against a copy taken earlier in the transaction lets a client
    write back a status that an admin has since moved on from.
    """
    if ctx.principal_id is None or current.get("client_id") != ctx.principal_id:
        return Decision.deny("only the owning client can update this order")
    if proposed.get("client_id") != ctx.principal_id:
        return Decision.deny("order ownership cannot be transferred")
    if proposed.get("status") != current.get("status"):
        return Decision.deny("order status can only be changed by the system")

    if enforce_allowlist:
        blocked = sorted(set(changed) - CLIENT_WRITABLE_ORDER_COLUMNS)
        if blocked:
            return Decision.deny(f"columns not writable by clients: {', '.join(blocked)}")

    return Decision.allow()
