"""Apply pending migrations: ``python -m po_confirmation.db.migrate``"""
import asyncio
import logging
import sys

from po_confirmation.core.config import settings
from po_confirmation.db.migrations import run_migrations
from po_confirmation.db.session import engine

logger = logging.getLogger(__name__)


async def _migrate() -> int:
    try:
        applied = await run_migrations(engine)
    except Exception as e:
        logger.error(f"Migration failed: {e}", exc_info=True)
        return 1
    finally:
        await engine.dispose()

    for name in applied:
        print(f"Applied {name}")
    if not applied:
        print("Nothing to apply")
    return 0


def main():
    logging.basicConfig(level=settings.LOG_LEVEL)
    sys.exit(asyncio.run(_migrate()))


if __name__ == "__main__":
    main()
