# eduos/core/utils/logger.py
import logging
from logging.handlers import RotatingFileHandler
from eduos.config import settings

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

_configured = False


def setup_logging() -> logging.Logger:
    """Configure the ``eduos`` logger once: console plus optional rotating file."""
    global _configured
    root_logger = logging.getLogger("eduos")
    if _configured:
        return root_logger

    formatter = logging.Formatter(LOG_FORMAT)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL, logging.INFO))

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if settings.LOG_FILE:
        file_handler = RotatingFileHandler(
            settings.LOG_FILE, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Only warnings from the access log
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    _configured = True
    return root_logger
