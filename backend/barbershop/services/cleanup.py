"""
Appointment cleanup.

Periodically deletes cancelled appointments and appointments dated
before the retention cutoff (today - retention_days).
Recurring appointments are never touched. Cache entries of the dates
that lost rows are invalidated, and the engine forgets snapshot days
before the cutoff.

Runs as an asyncio task in backend lifespan.
"""

import asyncio
import logging
from datetime import date, timedelta

from .engine import BookingEngine
from .slots.invalidator import invalidate_date

logger = logging.getLogger(__name__)


async def run_cleanup(
    engine: BookingEngine,
    today: date | None = None,
    retention_days: int = 1,
) -> dict:
    """
    Delete cancelled and expired appointments once.

    Returns:
        {"cancelled": int, "expired": int, "total": int}
    """
    today = today or date.today()
    cutoff = today - timedelta(days=retention_days)

    result = await engine.store.delete_expired(cutoff)

    for day in result["dates"]:
        await invalidate_date(engine.cache, date.fromisoformat(day))
    engine.forget_before(cutoff)

    logger.info(
        f"Cleanup done: {result['cancelled']} cancelled, "
        f"{result['expired']} expired, {result['total']} total removed"
    )
    return {
        "cancelled": result["cancelled"],
        "expired": result["expired"],
        "total": result["total"],
    }


async def cleanup_checker_loop(
    engine: BookingEngine,
    interval_seconds: int = 3600,
    retention_days: int = 1,
) -> None:
    """Run cleanup every interval_seconds until cancelled."""
    logger.info("cleanup_checker_loop started")

    try:
        while True:
            try:
                await run_cleanup(engine, retention_days=retention_days)
            except asyncio.CancelledError:
                logger.info("cleanup_checker_loop cancelled")
                raise
            except Exception:
                logger.exception("cleanup_checker_loop error")

            await asyncio.sleep(interval_seconds)
    except asyncio.CancelledError:
        pass
