"""Logging setup for the loader.

Records go to stderr so stdout stays reserved for the career JSON. In
production each record is one key="value" line, with the ``extra`` context
the services attach (career_id, code, table, ...) kept as fields.
"""

import logging
import sys
from typing import Any, Optional

from career_loader.config import get_settings

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Everything a bare record carries; anything else on a record came from ``extra``
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime"}

# Loaders this tool pulls in that are too chatty at INFO
QUIET_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "asyncpg": logging.WARNING,
    "alembic": logging.INFO,
}


class StructuredFormatter(logging.Formatter):
    """Render a record as a single line of key="value" pairs."""

    def format(self, record: logging.LogRecord) -> str:
        fields = [
            ("timestamp", self.formatTime(record, self.datefmt)),
            ("level", record.levelname),
            ("logger", record.name),
            ("message", record.getMessage()),
        ]
        fields.extend(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )
        if record.exc_info:
            fields.append(("exception", self.formatException(record.exc_info)))

        return " ".join(f'{key}="{self._escape(value)}"' for key, value in fields)

    @staticmethod
    def _escape(value: Any) -> str:
        # Tracebacks and scraped titles carry newlines and quotes
        return str(value).replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger on stderr.

    Args:
        level: Level name overriding ``LOG_LEVEL``, e.g. "DEBUG" for the
            CLI's ``--verbose`` flag.
    """
    settings = get_settings()
    level = (level or settings.LOG_LEVEL).upper()

    if settings.is_production:
        formatter: logging.Formatter = StructuredFormatter(datefmt=DATE_FORMAT)
    else:
        formatter = logging.Formatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers[:] = [handler]
    root_logger.setLevel(level)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    root_logger.debug(
        "Logging configured",
        extra={"log_level": level, "environment": settings.ENVIRONMENT},
    )
