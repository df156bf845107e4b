"""
Scheduled waitlist sweep.

Run from cron (or any scheduler) every few minutes:

    campusrsvp-sweep

Each run renumbers every event's waitlist and promotes into free slots,
catching promotions a cancellation missed (crash, lost race, DB hiccup).
"""

import asyncio

from campusrsvp.core.logging import get_logger, setup_logging
from campusrsvp.db.session import SessionLocal, engine
from campusrsvp.services.cache_service import close_redis, invalidate_event_cache
from campusrsvp.services.rsvp_store import RsvpStore
from campusrsvp.services.waitlist_service import SweepSummary, WaitlistPromoter

logger = get_logger(__name__)


async def run_once() -> SweepSummary:
    async with SessionLocal() as session:
        summary = await WaitlistPromoter(RsvpStore(session)).sweep()
    if summary.promotions:
        await invalidate_event_cache()
    return summary


async def _main() -> None:
    try:
        await run_once()
    finally:
        await close_redis()
        await engine.dispose()


def main() -> None:
    # Cron output goes straight to the log collector
    setup_logging(json_logs=True)
    logger.info("waitlist_sweep_starting")
    asyncio.run(_main())


if __name__ == "__main__":
    main()
