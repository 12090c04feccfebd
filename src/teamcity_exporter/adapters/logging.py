"""Python logging handler adapter for the exporter.

This adapter bridges Python's standard library logging module to the
LogStoragePort, so the exporter's own log lines (failed queries, skipped
statistics, probe results) can be read back from the /logs endpoint.
"""

import logging
import traceback

from teamcity_exporter.core.models import LogEntry
from teamcity_exporter.core.ports import LogStoragePort

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Standard LogRecord attributes that should not be treated as extra fields
_STANDARD_LOGRECORD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


class LogStorageHandler(logging.Handler):
    """Logging handler that writes log records to a LogStoragePort.

    Example:
        ```python
        storage = RingBufferLogStorage(max_size=500)
        logging.getLogger().addHandler(LogStorageHandler(storage))
        ```
    """

    def __init__(self, storage: LogStoragePort) -> None:
        super().__init__()
        self._storage = storage

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a log record to the storage backend.

        Args:
            record: The log record to emit.
        """
        try:
            attributes: dict[str, str | int | float | bool] = {
                "logger": record.name,
                "funcName": record.funcName or "",
                "lineno": record.lineno,
            }

            # Add any extra attributes passed via logging call
            for key, value in record.__dict__.items():
                if key not in _STANDARD_LOGRECORD_ATTRS and isinstance(
                    value, (str, int, float, bool)
                ):
                    attributes[key] = value

            if record.exc_info:
                exc_type, exc_value, exc_tb = record.exc_info
                if exc_type is not None:
                    attributes["exc_type"] = exc_type.__name__
                if exc_value is not None:
                    attributes["exc_message"] = str(exc_value)
                if exc_tb is not None:
                    attributes["exc_traceback"] = "".join(
                        traceback.format_exception(exc_type, exc_value, exc_tb)
                    )

            entry = LogEntry(
                timestamp=record.created,
                level=record.levelname,
                message=record.getMessage(),
                attributes=attributes,
            )
            self._storage.write_sync(entry)
        except Exception:
            self.handleError(record)


def configure_logging(
    level: str = "INFO",
    log_storage: LogStoragePort | None = None,
) -> None:
    """Configure root logging for the exporter process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_storage: When given, records are also captured into this storage.
    """
    logging.basicConfig(format=LOG_FORMAT, datefmt=DATE_FORMAT)
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if log_storage is not None:
        root.addHandler(LogStorageHandler(log_storage))
    # one line per request is noise next to the scrape logs
    logging.getLogger("httpx").setLevel(logging.WARNING)
