"""Post Event worker.

Creates the tables and keeps the notification sweep running until
interrupted.
"""
import logging
import signal
import threading

from post_event.core.config import settings
from post_event.core.database import create_db_and_tables
from post_event.core.logging import configure_logging
from post_event.core.scheduler import shutdown_scheduler, start_scheduler

logger = logging.getLogger(__name__)


def startup():
    """Application startup."""
    log_file = configure_logging()
    logger.info(f"Starting {settings.app_name} (logging to {log_file})")
    create_db_and_tables()
    start_scheduler()


def shutdown():
    """Application shutdown."""
    shutdown_scheduler()
    logger.info(f"{settings.app_name} shut down")


def main():
    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda signum, frame: stop.set())

    startup()
    try:
        stop.wait()
    except KeyboardInterrupt:
        pass
    finally:
        shutdown()


if __name__ == "__main__":
    main()
