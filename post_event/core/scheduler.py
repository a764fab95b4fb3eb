"""Background job scheduler for retrying invitation notifications."""
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from post_event.core.config import settings
from post_event.core.database import session_scope
from post_event.events.pipeline import PostEventService

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(timezone="UTC")


def notification_sweep_job():
    """Send invitations that were never delivered."""
    try:
        with session_scope() as session:
            result = PostEventService(session).dispatch_pending()
            logger.info(
                f"Notification sweep completed: {result.sent} sent, "
                f"{result.skipped} skipped, {len(result.failed)} failed"
            )
    except Exception as e:
        logger.error(f"Notification sweep failed: {e}")


def start_scheduler():
    """Start the background scheduler."""
    scheduler.add_job(
        notification_sweep_job,
        trigger=IntervalTrigger(minutes=settings.notification_sweep_interval_minutes),
        id="notification_sweep",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started, sweeping notifications every "
        f"{settings.notification_sweep_interval_minutes} minutes"
    )


def shutdown_scheduler():
    """Graceful shutdown."""
    scheduler.shutdown(wait=False)
    logger.info("Scheduler shut down")
