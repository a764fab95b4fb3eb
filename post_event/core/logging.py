"""Logging setup shared by the worker entry point and scripts."""
import logging
from pathlib import Path

from post_event.core.config import settings


def configure_logging(log_file: str | None = None) -> Path:
    """Send log records to a file, at DEBUG level when settings.debug is on.

    Returns the path of the log file in use.
    """
    if log_file or settings.log_file:
        path = Path(log_file or settings.log_file)
    else:
        path = Path.home() / ".logs" / "post_event" / "latest.log"
    path.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        filename=str(path),
    )
    return path
