# committee_events/core/logging_config.py
"""
Central logging configuration for the Committee Events service.
"""

import logging

from committee_events.core.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Third-party loggers that are too chatty at INFO.
_NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio")


def configure_logging(level: str | None = None) -> None:
    """
    Configure the root logger.

    The level comes from `LOG_LEVEL` unless given explicitly. Handlers are only
    installed when none exist yet, so uvicorn/pytest setups are left alone.
    """
    name = (level or get_settings().LOG_LEVEL).upper()
    root_level = getattr(logging, name, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(root_level, logging.WARNING))
