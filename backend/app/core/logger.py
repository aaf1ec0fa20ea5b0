"""
Shared application logger
"""
import logging
import sys

from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str | None = None) -> logging.Logger:
    """Attach a stream handler to the root "app" logger once."""
    app_logger = logging.getLogger("app")
    app_logger.setLevel((level or settings.LOG_LEVEL).upper())

    if not app_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        app_logger.addHandler(handler)

    return app_logger


setup_logging()
logger = logging.getLogger("app.panchtatva")
