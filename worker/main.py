"""
Reminder worker with scheduled jobs.
Sends open points reminders and warranty expiry alerts.
"""

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from servicedesk.services.database import create_engine, create_session_maker
from servicedesk.services.notification_service import NotificationDispatcher
from servicedesk.services.push_sender import PushSender

from worker.config import settings
from worker.jobs.open_points_job import open_points_reminder_job
from worker.jobs.warranty_job import warranty_expiry_job

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def main():
    """Initialize and run the worker scheduler."""
    logger.info("Starting reminder worker...")

    engine = create_engine(settings.DATABASE_URL)
    session_maker = create_session_maker(engine)
    push_sender = PushSender.from_settings(settings)
    dispatcher = NotificationDispatcher(push_sender)

    scheduler = AsyncIOScheduler(timezone=settings.CRON_TIMEZONE)

    # Schedule open points reminder job
    scheduler.add_job(
        open_points_reminder_job,
        trigger=CronTrigger.from_crontab(settings.OPEN_POINTS_CRON_SCHEDULE, timezone=settings.CRON_TIMEZONE),
        args=[session_maker, dispatcher],
        id="open_points_reminder",
        name="Send open points reminders",
        replace_existing=True,
    )

    # Schedule warranty expiry alert job
    scheduler.add_job(
        warranty_expiry_job,
        trigger=CronTrigger.from_crontab(settings.WARRANTY_ALERT_CRON_SCHEDULE, timezone=settings.CRON_TIMEZONE),
        args=[session_maker, dispatcher, settings.WARRANTY_EXPIRY_WINDOW_DAYS],
        id="warranty_expiry_alerts",
        name="Send warranty expiry alerts",
        replace_existing=True,
    )

    if settings.RUN_ON_STARTUP:
        logger.info("Running open points reminder on startup...")
        await open_points_reminder_job(session_maker, dispatcher)

    # Start scheduler
    scheduler.start()
    logger.info(f"Scheduler started ({settings.CRON_TIMEZONE}). Jobs: {[job.id for job in scheduler.get_jobs()]}")

    # Keep the worker running
    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
        logger.info("Shutting down worker...")
        scheduler.shutdown()
    finally:
        await push_sender.close()
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
