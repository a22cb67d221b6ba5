"""
Structured JSON logging for myRC.

Every record under the ``myrc`` logger namespace is written as one JSON
object per line.  The envelope is ``ts``, ``level``, ``logger`` and
``message``; request-scoped fields from ``LogContext`` and any ``extra``
passed to the logging call are merged in at the top level.

Usage:
    logger = get_logger("services.funding")
    logger.info("funding_item_created", extra={"item_id": str(item.id)})

Exceptions logged with ``exc_info`` contribute ``exc_type``,
``exc_message`` and a ``traceback``; ``MyRCError`` subclasses also add
``exc_code`` and their structured attributes as ``exc_<name>``.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Mapping
from contextvars import ContextVar, Token
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

_NAMESPACE = "myrc"


class LogContext:
    """
    Request-scoped log fields, safe across threads and asyncio tasks.

    The API sets ``request_id`` for each request and ``username`` once the
    caller is authenticated; services may bind ``rc_id`` and
    ``fiscal_year_id`` around work on a particular record.
    """

    FIELDS = ("request_id", "correlation_id", "username", "rc_id", "fiscal_year_id")

    _fields: ContextVar[Mapping[str, str]] = ContextVar("myrc_log_fields", default={})

    @classmethod
    def _merged(cls, values: Mapping[str, str | None]) -> dict[str, str]:
        merged = dict(cls._fields.get())
        for key, value in values.items():
            if key not in cls.FIELDS:
                raise ValueError(f"Unknown log context field: {key}")
            if value is not None:
                merged[key] = str(value)
        return merged

    @classmethod
    def set(cls, **values: str | None) -> None:
        """Add or replace fields; ``None`` values leave a field unchanged."""
        cls._fields.set(cls._merged(values))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(cls._fields.get())

    @classmethod
    def clear(cls) -> None:
        cls._fields.set({})

    @classmethod
    def bind(cls, **values: str | None) -> "_Binding":
        """Set fields for the duration of a ``with`` block."""
        return _Binding(cls._merged(values))


class _Binding:
    def __init__(self, fields: dict[str, str]):
        self._fields = fields
        self._token: Token | None = None

    def __enter__(self) -> type[LogContext]:
        self._token = LogContext._fields.set(self._fields)
        return LogContext

    def __exit__(self, *exc_info: Any) -> None:
        if self._token is not None:
            LogContext._fields.reset(self._token)
            self._token = None


# Attributes every LogRecord carries; anything else came from ``extra``.
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRIBUTES:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)


def get_logger(name: str) -> logging.Logger:
    """Logger named ``myrc.<name>``."""
    return logging.getLogger(f"{_NAMESPACE}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``myrc`` logger.

    Only the first call has an effect until ``reset_logging()``.  Records do
    not propagate to the root logger, so host applications keep their own
    formatting for non-myRC loggers.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    namespace_logger = logging.getLogger(_NAMESPACE)
    namespace_logger.setLevel(level.upper() if isinstance(level, str) else level)
    namespace_logger.propagate = False
    namespace_logger.addHandler(handler)


def reset_logging() -> None:
    """Remove the handler installed by ``configure_logging``. For tests."""
    global _configured
    with _lock:
        _configured = False
    namespace_logger = logging.getLogger(_NAMESPACE)
    namespace_logger.handlers.clear()
    namespace_logger.setLevel(logging.WARNING)
