"""
exam_platform/tasks/expiry_sweep.py
Periodic auto-submit of attempts whose time budget ran out
"""

import logging
import asyncio
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from exam_platform.core.clock import Clock, get_clock
from exam_platform.services.expiry_reaper import sweep_expired_attempts

logger = logging.getLogger(__name__)


async def run_sweep_once(session_factory: Optional[async_sessionmaker] = None,
                         clock: Optional[Clock] = None) -> int:
    """Run a single sweep cycle; returns the number of attempts closed."""
    if session_factory is None:
        from exam_platform.database import AsyncSessionLocal
        session_factory = AsyncSessionLocal
    clock = clock or get_clock()

    async with session_factory() as db:
        count = await sweep_expired_attempts(db, clock.now())
        logger.info(f"Expiry sweep completed: {count} attempts auto-submitted")
        return count


async def sweep_loop(interval_seconds: int = 60,
                     session_factory: Optional[async_sessionmaker] = None,
                     clock: Optional[Clock] = None):
    """
    Background sweep loop.
    Runs every interval_seconds until cancelled.
    """
    logger.info(f"Starting expiry sweep loop with interval {interval_seconds}s")

    while True:
        try:
            await run_sweep_once(session_factory, clock)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Expiry sweep loop error: {str(e)}")

        await asyncio.sleep(interval_seconds)


def start_sweep_task(interval_seconds: int = 60,
                     session_factory: Optional[async_sessionmaker] = None) -> asyncio.Task:
    """Start the sweep as a background task on the running loop."""
    return asyncio.create_task(sweep_loop(interval_seconds, session_factory))


if __name__ == "__main__":
    from dotenv import load_dotenv

    load_dotenv()

    logging.basicConfig(level=logging.INFO)

    asyncio.run(run_sweep_once())
