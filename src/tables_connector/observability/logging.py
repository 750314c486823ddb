"""Structured JSON logging with table/action context."""
import logging
import sys
from typing import Any, TextIO

from pythonjsonlogger import jsonlogger

from tables_connector.config import get_settings

CONTEXT_FIELDS = ("table", "action", "item_index")


class WorkContextFilter(logging.Filter):
    """Guarantee the unit-of-work context fields on every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for field in CONTEXT_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, None)
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with standardized field names."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)

        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        # Context is only emitted when set
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_record[field] = value
            else:
                log_record.pop(field, None)


def setup_logging(level: str | None = None, stream: TextIO | None = None) -> None:
    """Configure logging for the connector (JSON lines unless disabled)."""
    settings = get_settings()

    handler = logging.StreamHandler(stream or sys.stdout)
    if settings.log_json:
        formatter: logging.Formatter = CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    else:
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    handler.setFormatter(formatter)
    handler.addFilter(WorkContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level or settings.log_level)

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def log_context(
    table: str | None = None,
    action: str | None = None,
    item_index: int | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """
    Create an extra dict identifying the unit of work being logged.

    Args:
        table: Table key or identifier
        action: Action path
        item_index: Index of the input item
        **kwargs: Additional context fields

    Returns:
        Dict to pass as extra parameter to logger methods
    """
    extra = kwargs.copy()
    if table:
        extra["table"] = table
    if action:
        extra["action"] = action
    if item_index is not None:
        extra["item_index"] = item_index
    return extra
