"""Background task scheduler: turns allocated seeding requests into trays.

Uses FastAPI's lifespan context to start/stop an asyncio background loop
that runs the fulfillment boundary every ``fulfillment_interval_seconds``
for all farms.  Each run is one transaction; a failing run is logged and
the loop carries on with the next one.

Configuration:
    FULFILLMENT_INTERVAL_SECONDS=60   (0 disables the loop)
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sproutify.config import settings
from sproutify.database import async_session
from sproutify.services.fulfillment import FulfillmentSummary, fulfill_pending_requests

logger = logging.getLogger("sproutify.scheduler")


async def run_fulfillment_cycle() -> FulfillmentSummary | None:
    try:
        async with async_session() as db:
            try:
                summary = await fulfill_pending_requests(db)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
    except Exception:
        logger.exception("Fulfillment run failed")
        return None

    if summary.fulfilled_request_ids or summary.failed_request_ids:
        logger.info(
            "Fulfillment run: %d request(s) fulfilled, %d tray(s) created, %d waiting",
            len(summary.fulfilled_request_ids),
            summary.trays_created,
            len(summary.failed_request_ids),
        )
    return summary


async def _scheduler_loop(interval: int) -> None:
    while True:
        await asyncio.sleep(interval)
        await run_fulfillment_cycle()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan: start the fulfillment loop on startup, cancel on shutdown."""
    interval = settings.fulfillment_interval_seconds
    if interval <= 0:
        logger.info("Fulfillment scheduler disabled")
        yield
        return

    task = asyncio.create_task(_scheduler_loop(interval))
    logger.info("Fulfillment scheduler started (every %d s)", interval)
    try:
        yield
    finally:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Fulfillment scheduler stopped")
