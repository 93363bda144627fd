"""
APScheduler integration for FastAPI.

Normally an external scheduler calls POST /push/deliver-notifications every
hour. Setting SCHEDULER_ENABLED=true runs the same delivery pass in-process at
the top of every hour instead.
"""

from apscheduler import AsyncScheduler, ConflictPolicy
from apscheduler.datastores.memory import MemoryDataStore
from apscheduler.triggers.cron import CronTrigger

from tilly.config import get_settings
from tilly.core.logging import get_logger

logger = get_logger(__name__)

# Global scheduler instance
scheduler: AsyncScheduler | None = None


async def delivery_job() -> None:
    """Hourly notification delivery job."""
    from tilly.jobs.deliver import run_delivery

    logger.info("scheduled_delivery_started")
    try:
        run = await run_delivery()
        logger.bind(
            delivered=len(run.results),
            skipped=run.skipped_count,
            errors=run.error_count,
        ).info("scheduled_delivery_completed")
    except Exception as e:
        logger.bind(error=str(e)).error("scheduled_delivery_failed")
        raise  # Re-raise so APScheduler records the failure


async def start_scheduler() -> AsyncScheduler | None:
    """Initialize and start the scheduler."""
    global scheduler

    settings = get_settings()
    if not settings.scheduler_enabled:
        logger.info("scheduler_disabled_by_config")
        return None

    scheduler = AsyncScheduler(data_store=MemoryDataStore())

    # Start the scheduler first (required before calling other methods in APScheduler 4.x)
    await scheduler.__aenter__()

    await scheduler.add_schedule(
        delivery_job,
        CronTrigger(minute=0),
        id="notification_delivery",
        conflict_policy=ConflictPolicy.replace,
    )

    await scheduler.start_in_background()

    logger.bind(jobs=["notification_delivery"]).info("scheduler_started")
    return scheduler


async def stop_scheduler() -> None:
    """Gracefully stop the scheduler."""
    global scheduler
    if scheduler:
        await scheduler.__aexit__(None, None, None)
        logger.info("scheduler_stopped")
        scheduler = None
