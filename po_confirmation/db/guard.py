"""Row security evaluated by the store itself, before every flush.

Installed policies and guards live in ``_row_policy``; this module runs
them against each pending INSERT and UPDATE. Nothing reaches the database
until every applicable rule has allowed the row.

- guards (``kind=trigger``) must all allow; they do their own trust checks.
- policies (``kind=policy``) are skipped under system trust. Otherwise a
  table with any policy installed needs at least one policy for the command
  that allows the write.
- DELETE on a guarded table is reserved for system trust.
- bulk ``insert()``/``update()``/``delete()`` statements never pass through
  the flush, so on a guarded table they are reserved for system trust too,
  and so are raw SQL writes issued through ``text()``.
"""
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import TextClause, event, select
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import ORMExecuteState, Session

from po_confirmation.authz.context import CallerContext, Decision
from po_confirmation.authz.rules import WriteAttempt, evaluate
from po_confirmation.core.enums import GuardKind, UserRole, WriteCommand
from po_confirmation.core.errors import AuthorizationDenied
from po_confirmation.core.metrics import authz_decisions
from po_confirmation.models.migration import RowPolicy
from po_confirmation.models.user import User

logger = logging.getLogger(__name__)

CALLER_KEY = "caller"

# Leading DML keyword, or a CTE that ends in one. "FOR UPDATE" is a read lock.
_RAW_WRITE = re.compile(
    r"^\s*(?:(?:insert|update|delete|replace|merge|upsert)\b|with\b.*(?<!for )\b(?:insert|update|delete)\b)",
    re.IGNORECASE | re.DOTALL,
)


class GuardedSession(Session):
    """Sync session behind every AsyncSession the service opens."""


class StoreRoleLookup:
    """Reads a principal's role straight from ``users`` on every call."""

    def __init__(self, session: Session):
        self.session = session

    def role_of(self, principal_id: Optional[int]) -> Optional[UserRole]:
        if principal_id is None:
            return None
        users = User.__table__
        stmt = select(users.c.role).where(users.c.id == principal_id)
        return self.session.execute(stmt).scalar_one_or_none()


def _installed_guards(session: Session) -> Callable[[str], List[Any]]:
    cache: Dict[str, List[Any]] = {}
    policies = RowPolicy.__table__

    def load(table_name: str) -> List[Any]:
        if table_name not in cache:
            stmt = select(
                policies.c.name, policies.c.command, policies.c.kind, policies.c.rule
            ).where(policies.c.table_name == table_name).order_by(policies.c.name)
            cache[table_name] = list(session.connection().execute(stmt).all())
        return cache[table_name]

    return load


def _current_row(session: Session, table, pk) -> Optional[Dict[str, Any]]:
    # Core select: bypasses the identity map, so this is the committed row.
    stmt = select(table).where(table.c.id == pk).with_for_update()
    row = session.execute(stmt).mappings().first()
    return dict(row) if row is not None else None


def _build_attempt(session: Session, obj, command: WriteCommand) -> Optional[WriteAttempt]:
    state = sa_inspect(obj)
    mapper = state.mapper
    table = mapper.local_table

    if command == WriteCommand.INSERT:
        new = {attr.key: state.dict.get(attr.key) for attr in mapper.column_attrs}
        changed = frozenset(k for k, v in new.items() if v is not None)
        return WriteAttempt(table=table.name, command=command, old=None, new=new, changed=changed)

    pending = {}
    for attr in mapper.column_attrs:
        history = state.attrs[attr.key].history
        if history.added:
            pending[attr.key] = history.added[0]
    if not pending:
        return None

    old = _current_row(session, table, state.identity[0])
    if old is None:
        raise AuthorizationDenied("row is not visible to the caller", table.name, str(command))

    new = dict(old)
    new.update(pending)
    changed = frozenset(k for k, v in pending.items() if v != old.get(k))
    return WriteAttempt(table=table.name, command=command, old=old, new=new, changed=changed)


def _record(attempt: WriteAttempt, decision: Decision, source: str) -> None:
    outcome = "allow" if decision else "deny"
    authz_decisions.labels(table=attempt.table, command=str(attempt.command), outcome=outcome).inc()
    if not decision:
        logger.warning(f"{source} denied {attempt.command} on {attempt.table}: {decision.reason}")


def check_write(session: Session, caller: Optional[CallerContext], attempt: WriteAttempt, guards: List[Any]) -> None:
    if caller is None:
        raise AuthorizationDenied("session has no caller context", attempt.table, str(attempt.command))

    lookup = StoreRoleLookup(session)

    for guard in guards:
        if guard.kind != GuardKind.TRIGGER or guard.command != attempt.command:
            continue
        decision = evaluate(guard.rule, caller, attempt, lookup)
        _record(attempt, decision, guard.name)
        if not decision:
            raise AuthorizationDenied(decision.reason, attempt.table, str(attempt.command))

    policies = [g for g in guards if g.kind == GuardKind.POLICY]
    if not policies or caller.is_system:
        return

    reasons = []
    for policy in policies:
        if policy.command != attempt.command:
            continue
        decision = evaluate(policy.rule, caller, attempt, lookup)
        if decision:
            _record(attempt, decision, policy.name)
            return
        reasons.append(f"{policy.name}: {decision.reason}")

    denied = Decision.deny("; ".join(reasons) or f"no policy permits {attempt.command}")
    _record(attempt, denied, "row security")
    raise AuthorizationDenied(denied.reason, attempt.table, str(attempt.command))


@event.listens_for(GuardedSession, "before_flush")
def enforce_row_security(session: Session, flush_context, instances) -> None:
    caller = session.info.get(CALLER_KEY)
    guards_for = _installed_guards(session)

    for obj in list(session.new):
        guards = guards_for(sa_inspect(obj).mapper.local_table.name)
        if guards:
            check_write(session, caller, _build_attempt(session, obj, WriteCommand.INSERT), guards)

    for obj in list(session.dirty):
        if not session.is_modified(obj, include_collections=False):
            continue
        guards = guards_for(sa_inspect(obj).mapper.local_table.name)
        if not guards:
            continue
        attempt = _build_attempt(session, obj, WriteCommand.UPDATE)
        if attempt is not None:
            check_write(session, caller, attempt, guards)

    for obj in list(session.deleted):
        table_name = sa_inspect(obj).mapper.local_table.name
        if guards_for(table_name) and not (caller is not None and caller.is_system):
            _refuse(caller, table_name, WriteCommand.DELETE, "rows on this table are only deleted by trusted routines")


def _refuse(caller: Optional[CallerContext], table_name: str, command: str, reason: str) -> None:
    authz_decisions.labels(table=table_name, command=str(command), outcome="deny").inc()
    principal = caller.principal_id if caller is not None else None
    logger.warning(f"row security refused {command} on {table_name} for principal {principal}: {reason}")
    raise AuthorizationDenied(reason, table_name, str(command))


@event.listens_for(GuardedSession, "do_orm_execute")
def guard_bulk_writes(orm_execute_state: ORMExecuteState) -> None:
    session = orm_execute_state.session
    caller = session.info.get(CALLER_KEY)
    if caller is not None and caller.is_system:
        return

    statement = orm_execute_state.statement
    if isinstance(statement, TextClause):
        if _RAW_WRITE.match(statement.text):
            _refuse(caller, "sql", "TEXT", "raw SQL writes require a trusted routine")
        return

    if orm_execute_state.is_insert:
        command = WriteCommand.INSERT
    elif orm_execute_state.is_update:
        command = WriteCommand.UPDATE
    elif orm_execute_state.is_delete:
        command = WriteCommand.DELETE
    else:
        return

    table_name = getattr(getattr(statement, "table", None), "name", None)
    if table_name is None:
        _refuse(caller, "unknown", command, f"bulk {command} target is not a plain table")
    if _installed_guards(session)(table_name):
        _refuse(caller, table_name, command, f"bulk {command} skips per-row checks; write rows through the session")
