"""
Structured logging for account sync.

Sync never reports failures to the user, so the log stream is the only
place a lost push shows up. Records carry the sync context (which user,
why a push ran, which key or store operation) as fields, and the JSON
formatter groups them so one user's pushes and pulls can be followed.

    >>> configure_sync_logging(logging.DEBUG)
    >>> log = get_sync_logger(__name__, user_id="user-1")
    >>> log.bind(reason="debounced").info("Completed push")
    {"timestamp": "...", "level": "INFO", "component": "sync.engine",
     "message": "Completed push", "context": {"user_id": "user-1", "reason": "debounced"}}
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, TextIO

ROOT_LOGGER = "account_sync"

# Record attributes collected under "context"
SYNC_CONTEXT_FIELDS = ("user_id", "reason", "key", "operation", "backend")


def _component(logger_name: str) -> str:
    """Logger name relative to the package (``account_sync.sync.engine`` -> ``sync.engine``)."""
    prefix = f"{ROOT_LOGGER}."
    return logger_name[len(prefix):] if logger_name.startswith(prefix) else logger_name


class SyncJsonFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, component, message,
    and a ``context`` object holding whichever sync fields the record has."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "component": _component(record.name),
            "message": record.getMessage(),
        }

        context = {
            name: getattr(record, name)
            for name in SYNC_CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        }
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def configure_sync_logging(
    level: int = logging.INFO, stream: TextIO | None = None
) -> logging.Logger:
    """Send account sync logs to stream as JSON lines.

    Configures only the ``account_sync`` logger. Calling it again
    replaces the handler it installed before.

    Args:
        level: Minimum level to emit
        stream: Output stream (stderr if None)

    Returns:
        The ``account_sync`` logger
    """
    logger = logging.getLogger(ROOT_LOGGER)

    for handler in list(logger.handlers):
        if isinstance(handler.formatter, SyncJsonFormatter):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(SyncJsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)

    return logger


class SyncLoggerAdapter(logging.LoggerAdapter):
    """Logger with a fixed sync context attached to every record.

    Context given at the call site with ``extra`` wins over bound context.
    """

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs

    def bind(self, **context: Any) -> "SyncLoggerAdapter":
        """Return an adapter with additional context."""
        return SyncLoggerAdapter(self.logger, {**(self.extra or {}), **context})


def get_sync_logger(name: str, **context: Any) -> SyncLoggerAdapter:
    """Module logger carrying sync context.

    Args:
        name: Logger name, normally ``__name__``
        **context: Initial context, e.g. ``user_id``
    """
    return SyncLoggerAdapter(logging.getLogger(name), context)
