import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from po_confirmation.authz.context import CallerContext
from po_confirmation.core.config import settings
from po_confirmation.core.errors import TransientWriteFailure
from po_confirmation.db.guard import CALLER_KEY, GuardedSession

logger = logging.getLogger(__name__)

engine = create_async_engine(settings.DATABASE_URL, future=True, echo=False)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        sync_session_class=GuardedSession,
        expire_on_commit=False,
    )


AsyncSessionLocal = make_session_factory(engine)


def get_session_factory() -> async_sessionmaker:
    return AsyncSessionLocal


def open_session(factory: async_sessionmaker, caller: CallerContext) -> AsyncSession:
    """Every session is bound to exactly one caller for its whole life."""
    return factory(info={CALLER_KEY: caller})


def caller_of(session: AsyncSession) -> Optional[CallerContext]:
    return session.info.get(CALLER_KEY)


@asynccontextmanager
async def write_scope(factory: async_sessionmaker, caller: CallerContext) -> AsyncIterator[AsyncSession]:
    """One transaction for ``caller``; commits on exit, rolls back on error.

    Connection-level failures surface as ``TransientWriteFailure``.
    """
    try:
        async with open_session(factory, caller) as session:
            async with session.begin():
                yield session
    except (OperationalError, InterfaceError, OSError) as e:
        logger.error(f"Write failed for principal {caller.principal_id}: {e}")
        raise TransientWriteFailure(str(e)) from e
