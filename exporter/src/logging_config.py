"""
Structured JSON logging configuration for the exporter.

Provides a custom JSON formatter and a ``setup_logging()`` function
that replaces the default logging configuration with structured output.
Each log record is emitted as a single JSON line containing:
``timestamp``, ``level``, ``logger``, ``message`` and, when an exception is
attached, ``exception``.

CHANGELOG:
- 2026-10-02: Initial creation (STORY-012)
- 2026-10-08: Include tracebacks, quiet per-request httpx logging (STORY-012)

TODO:
- None
"""

import json
import logging
from datetime import UTC, datetime

# Loggers that log every request URL at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore")


class JSONFormatter(logging.Formatter):
    """Logging formatter that outputs a single JSON object per line.

    Fields emitted:
    - ``timestamp``: ISO-8601 UTC timestamp.
    - ``level``: Log level name (INFO, WARNING, ERROR, ...).
    - ``logger``: Logger name.
    - ``message``: Formatted log message.
    - ``exception``: Formatted traceback, only when ``exc_info`` is set.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format *record* as a JSON string.

        Args:
            record: The log record to format.

        Returns:
            A single-line JSON string.
        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging(level: int | str = logging.INFO) -> None:
    """Configure the root logger with structured JSON output.

    Removes any existing handlers on the root logger and installs
    a single ``StreamHandler`` using :class:`JSONFormatter`.

    Args:
        level: Logging level for the root logger, as an int or a level
            name. Defaults to ``logging.INFO``.
    """
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers to avoid duplicate output.
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
