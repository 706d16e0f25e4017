"""Background re-dispatch of incidents still waiting for a responder."""

import logging
from datetime import UTC, datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from responder_dispatch.config import get_settings
from responder_dispatch.database import async_session_maker
from responder_dispatch.errors import DispatchError
from responder_dispatch.models import Incident
from responder_dispatch.services.dispatch import Assigned, DispatchService

logger = logging.getLogger(__name__)
settings = get_settings()

# Global scheduler instance
scheduler: AsyncIOScheduler | None = None


async def redispatch_pending(db: AsyncSession, batch_size: int) -> int:
    """
    Retry auto-assignment for the oldest ``reported`` incidents.

    Highest priority first, then oldest. One failure does not stop the
    batch. Returns the number of incidents that got a responder.
    """
    result = await db.execute(
        select(Incident.id)
        .where(Incident.status == "reported", Incident.coordinates.is_not(None))
        .order_by(Incident.priority, Incident.reported_at)
        .limit(batch_size)
    )
    incident_ids = list(result.scalars().all())
    if not incident_ids:
        return 0

    service = DispatchService(db)
    assigned = 0
    for incident_id in incident_ids:
        try:
            outcome = await service.auto_assign(incident_id)
        except DispatchError as e:
            logger.warning(f"Re-dispatch of emergency {incident_id} failed: {e}")
            continue
        if isinstance(outcome, Assigned):
            assigned += 1

    logger.info(f"Re-dispatch pass: {assigned}/{len(incident_ids)} emergencies assigned")
    return assigned


async def redispatch_pending_job() -> None:
    """Scheduled wrapper around redispatch_pending."""
    try:
        async with async_session_maker() as db:
            await redispatch_pending(db, settings.redispatch_batch_size)
    except Exception as e:
        logger.error(f"Re-dispatch job failed: {e}", exc_info=True)


def setup_scheduler() -> AsyncIOScheduler | None:
    """Set up and start the background task scheduler."""
    global scheduler

    if not settings.redispatch_enabled:
        logger.info("Re-dispatch disabled; scheduler not started")
        return None

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        redispatch_pending_job,
        trigger=IntervalTrigger(minutes=settings.redispatch_interval_minutes),
        next_run_time=datetime.now(UTC) + timedelta(seconds=10),
        id="redispatch_pending",
        name="Re-dispatch incidents awaiting a responder",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Scheduler started")

    return scheduler


def shutdown_scheduler() -> None:
    """Shut down the scheduler gracefully."""
    global scheduler

    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shut down")
        scheduler = None
