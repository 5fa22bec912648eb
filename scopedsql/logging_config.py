"""
Logging setup for applications embedding scopedsql.

The library itself only creates module loggers; call configure_logging()
from the application entry point to get the standard format.
"""

import logging
from typing import Optional

from scopedsql.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class RequestIdFilter(logging.Filter):
    """Fill in request_id for records logged outside a request."""

    def filter(self, record):
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        return True


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging with the scopedsql format.

    Args:
        level: Log level name; defaults to Settings.log_level
    """
    level = (level or get_settings().log_level).upper()

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT)

    for handler in logging.root.handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())

    logging.getLogger("scopedsql").setLevel(level)
