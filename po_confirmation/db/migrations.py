"""Append-only, idempotent schema migrations.

Every migration records its name in ``_migration_log`` and is skipped once
recorded. Inside a migration, column additions are add-if-missing and
policies/guards are replaced by fixed name, so a half-applied migration can
simply be run again.
"""
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from sqlalchemy import inspect, select, text
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncEngine

from po_confirmation.core.enums import GuardKind, WriteCommand
from po_confirmation.core.metrics import migrations_applied
from po_confirmation.models.base import Base
from po_confirmation.models.migration import MigrationLog, RowPolicy
from po_confirmation.models import audit, notification, order, user  # noqa: F401  (register tables)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    name: str
    upgrade: Callable[[Connection], None]


def add_column_if_missing(conn: Connection, table: str, column: str, ddl_type: str, ddl_default: Optional[str] = None) -> bool:
    existing = {col["name"] for col in inspect(conn).get_columns(table)}
    if column in existing:
        return False
    ddl = f"ALTER TABLE {table} ADD COLUMN {column} {ddl_type}"
    if ddl_default is not None:
        ddl += f" DEFAULT {ddl_default}"
    conn.execute(text(ddl))
    logger.info(f"Added column {table}.{column}")
    return True


def replace_row_policy(conn: Connection, name: str, table: str, command: WriteCommand, rule: str,
                       kind: GuardKind = GuardKind.POLICY) -> None:
    policies = RowPolicy.__table__
    conn.execute(policies.delete().where(policies.c.name == name, policies.c.table_name == table))
    conn.execute(policies.insert().values(name=name, table_name=table, command=command, kind=kind, rule=rule))


def drop_row_guards(conn: Connection, table: str, keep: Sequence[str] = ()) -> List[str]:
    policies = RowPolicy.__table__
    rows = conn.execute(
        select(policies.c.name).where(
            policies.c.table_name == table,
            policies.c.kind == GuardKind.TRIGGER,
        )
    ).scalars().all()
    dropped = [name for name in rows if name not in keep]
    for name in dropped:
        conn.execute(policies.delete().where(policies.c.name == name, policies.c.table_name == table))
        logger.info(f"Dropped guard {name} on {table}")
    return dropped


def _base_schema(conn: Connection) -> None:
    Base.metadata.create_all(conn, checkfirst=True)


def _user_profile_policies(conn: Connection) -> None:
    replace_row_policy(conn, "Users can update own profile", "users", WriteCommand.UPDATE, "user_self_update")
    replace_row_policy(conn, "Admins can update any profile", "users", WriteCommand.UPDATE, "user_admin_update")


def _user_profile_guard(conn: Connection) -> None:
    # Older restrictive guards also blocked trusted credit updates; drop them all.
    drop_row_guards(conn, "users")
    replace_row_policy(
        conn,
        "trg_enforce_safe_user_profile_update",
        "users",
        WriteCommand.UPDATE,
        "safe_user_profile_update",
        kind=GuardKind.TRIGGER,
    )


def _po_submission_columns(conn: Connection) -> None:
    timestamp = "TIMESTAMP WITH TIME ZONE"
    add_column_if_missing(conn, "orders", "not_test_order_confirmed_at", timestamp)
    add_column_if_missing(conn, "orders", "payment_terms_confirmed_at", timestamp)
    add_column_if_missing(conn, "orders", "client_po_confirmation_submitted_at", timestamp)
    add_column_if_missing(conn, "orders", "client_po_uploaded", "BOOLEAN NOT NULL", "FALSE")


def _client_order_policies(conn: Connection) -> None:
    replace_row_policy(conn, "Clients can create own orders", "orders", WriteCommand.INSERT, "order_client_insert")
    replace_row_policy(conn, "Clients can update own PO fields", "orders", WriteCommand.UPDATE, "order_client_update")


MIGRATIONS: List[Migration] = [
    Migration("0001_base_schema", _base_schema),
    Migration("0002_user_profile_policies", _user_profile_policies),
    Migration("0003_user_profile_guard", _user_profile_guard),
    Migration("0004_po_submission_columns", _po_submission_columns),
    Migration("0005_client_order_policies", _client_order_policies),
]


def applied_migrations(conn: Connection) -> List[str]:
    log = MigrationLog.__table__
    return list(conn.execute(select(log.c.migration_name).order_by(log.c.id)).scalars().all())


def apply_migrations(conn: Connection, migrations: Optional[Sequence[Migration]] = None) -> List[str]:
    """Apply pending migrations in order; returns the names applied now."""
    if migrations is None:
        migrations = MIGRATIONS

    MigrationLog.__table__.create(conn, checkfirst=True)
    RowPolicy.__table__.create(conn, checkfirst=True)
    done = set(applied_migrations(conn))

    applied = []
    for migration in migrations:
        if migration.name in done:
            logger.debug(f"Skipping {migration.name}: already applied")
            continue
        logger.info(f"Applying migration {migration.name}")
        migration.upgrade(conn)
        conn.execute(MigrationLog.__table__.insert().values(migration_name=migration.name))
        done.add(migration.name)
        applied.append(migration.name)
        migrations_applied.inc()

    if not applied:
        logger.info("Schema is up to date")
    return applied


async def run_migrations(engine: AsyncEngine, migrations: Optional[Sequence[Migration]] = None) -> List[str]:
    async with engine.begin() as conn:
        return await conn.run_sync(apply_migrations, migrations)
