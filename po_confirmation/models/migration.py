from sqlalchemy import Column, Integer, String, DateTime, Enum, UniqueConstraint
from po_confirmation.models.base import Base, utcnow
from po_confirmation.core.enums import WriteCommand, GuardKind


class MigrationLog(Base):
    __tablename__ = "_migration_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    migration_name = Column(String(255), unique=True, nullable=False)
    applied_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class RowPolicy(Base):
    """An installed row policy or BEFORE-write guard, keyed by (name, table)."""
    __tablename__ = "_row_policy"
    __table_args__ = (UniqueConstraint("name", "table_name", name="uq_row_policy_name_table"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    table_name = Column(String(64), nullable=False, index=True)
    command = Column(Enum(WriteCommand, name="write_command"), nullable=False)
    kind = Column(Enum(GuardKind, name="guard_kind"), nullable=False)
    rule = Column(String(64), nullable=False)
