"""Named rules that installed row policies and guards point at.

A ``_row_policy`` row stores only the rule key; the store looks the key up
here when it evaluates a write. Each adapter pulls whatever fresh state its
pure rule needs from the ``RoleLookup`` handed in by the store.
"""
import logging
from dataclasses import dataclass
from typing import AbstractSet, Any, Callable, Dict, Mapping, Optional, Protocol

from po_confirmation.authz.context import CallerContext, Decision
from po_confirmation.authz.orders import authorize_order_insert, authorize_order_update
from po_confirmation.authz.users import (
    authorize_user_admin_update,
    authorize_user_self_update,
    authorize_user_update,
)
from po_confirmation.core.config import settings
from po_confirmation.core.enums import UserRole, WriteCommand

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WriteAttempt:
    table: str
    command: WriteCommand
    old: Optional[Mapping[str, Any]]
    new: Mapping[str, Any]
    changed: AbstractSet[str]


class RoleLookup(Protocol):
    def role_of(self, principal_id: Optional[int]) -> Optional[UserRole]:
        ...


Rule = Callable[[CallerContext, WriteAttempt, RoleLookup], Decision]

RULES: Dict[str, Rule] = {}


def rule(name: str) -> Callable[[Rule], Rule]:
    def decorator(func: Rule) -> Rule:
        RULES[name] = func
        return func
    return decorator


def evaluate(rule_name: str, ctx: CallerContext, attempt: WriteAttempt, lookup: RoleLookup) -> Decision:
    func = RULES.get(rule_name)
    if func is None:
        logger.error(f"Installed rule {rule_name!r} on {attempt.table} is not registered")
        return Decision.deny(f"unknown rule {rule_name!r}")
    return func(ctx, attempt, lookup)


@rule("order_client_insert")
def order_client_insert(ctx: CallerContext, attempt: WriteAttempt, lookup: RoleLookup) -> Decision:
    return authorize_order_insert(ctx, lookup.role_of(ctx.principal_id), attempt.new)


@rule("order_client_update")
def order_client_update(ctx: CallerContext, attempt: WriteAttempt, lookup: RoleLookup) -> Decision:
    return authorize_order_update(
        ctx,
        attempt.old,
        attempt.new,
        attempt.changed,
        enforce_allowlist=settings.ORDER_CLIENT_COLUMN_ALLOWLIST,
    )


@rule("user_self_update")
def user_self_update(ctx: CallerContext, attempt: WriteAttempt, lookup: RoleLookup) -> Decision:
    return authorize_user_self_update(ctx, attempt.old, attempt.new)


@rule("user_admin_update")
def user_admin_update(ctx: CallerContext, attempt: WriteAttempt, lookup: RoleLookup) -> Decision:
    return authorize_user_admin_update(lookup.role_of(ctx.principal_id))


@rule("safe_user_profile_update")
def safe_user_profile_update(ctx: CallerContext, attempt: WriteAttempt, lookup: RoleLookup) -> Decision:
    caller_role = None
    if not ctx.is_system and ctx.principal_id is not None:
        caller_role = lookup.role_of(ctx.principal_id)
    return authorize_user_update(
        ctx,
        caller_role,
        attempt.old,
        attempt.new,
        protect_financial_counters=settings.PROTECT_FINANCIAL_COUNTERS,
    )
