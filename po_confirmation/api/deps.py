import logging
from typing import AsyncIterator, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from po_confirmation.authz.context import CallerContext
from po_confirmation.core.redis import get_redis, redis_available
from po_confirmation.core.security import get_current_caller
from po_confirmation.db.session import get_session_factory, open_session
from po_confirmation.utils.locks import SubmissionLock

logger = logging.getLogger(__name__)


async def get_db(
    caller: CallerContext = Depends(get_current_caller),
    factory: async_sessionmaker = Depends(get_session_factory),
) -> AsyncIterator[AsyncSession]:
    async with open_session(factory, caller) as db:
        yield db


async def get_anonymous_db(
    factory: async_sessionmaker = Depends(get_session_factory),
) -> AsyncIterator[AsyncSession]:
    async with open_session(factory, CallerContext.anonymous()) as db:
        yield db


def get_submission_lock() -> Optional[SubmissionLock]:
    if not redis_available():
        logger.warning("Redis unavailable, PO submissions are only guarded in-process")
        return None
    return SubmissionLock(get_redis())
