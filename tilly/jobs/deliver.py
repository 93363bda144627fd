"""
Notification delivery job.

Run with: python -m tilly.jobs.deliver

This job:
1. Enumerates every account page by page
2. Checks each account's delivery gate and due reminders
3. Pushes a notification to each eligible account's enabled devices
"""

import asyncio

from tilly.config import get_config
from tilly.core.database import AsyncSessionLocal
from tilly.core.logging import get_logger, setup_logging
from tilly.services.notification_delivery import DeliveryRun, deliver_notifications
from tilly.services.notification_store import SqlNotificationStore
from tilly.services.push_service import PushSender
from tilly.services.user_source import DatabaseUserSource

logger = get_logger(__name__)


async def run_delivery() -> DeliveryRun:
    """Build the collaborators from configuration and run one delivery pass."""
    config = get_config()
    source = DatabaseUserSource(
        AsyncSessionLocal,
        page_size=config.push.page_size,
        timeout_seconds=config.push.user_source_timeout_seconds,
        max_attempts=config.push.user_source_max_attempts,
    )
    store = SqlNotificationStore(AsyncSessionLocal)
    sender = PushSender.from_settings(config.settings, config.push)
    return await deliver_notifications(source, store, sender, config.push)


async def main() -> DeliveryRun:
    """Run the notification delivery job."""
    setup_logging()
    logger.info("deliver_job_started")

    try:
        run = await run_delivery()
    except Exception as e:
        logger.bind(error=str(e)).error("deliver_job_failed")
        raise

    logger.bind(message=run.message).info("deliver_job_completed")
    return run


if __name__ == "__main__":
    asyncio.run(main())
