"""Logging setup with per-request correlation fields.

Gateway calls for one upstream request (token check, key lookup, signing)
share a ``request_id`` so their records can be grouped after the fact.
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime


@dataclass(frozen=True, slots=True)
class CorrelationContext:
    request_id: str | None = None
    operation: str | None = None


_EMPTY_CONTEXT = CorrelationContext()
_CORRELATION_CONTEXT: contextvars.ContextVar[CorrelationContext | None] = contextvars.ContextVar(
    "custody_correlation_context",
    default=None,
)


def get_correlation_context() -> CorrelationContext:
    """Return the correlation IDs of the active execution context.

    Backed by ``contextvars`` so concurrent tasks spawned with
    ``asyncio.gather`` inherit the caller's request ID.
    """

    context = _CORRELATION_CONTEXT.get()
    if context is None:
        return _EMPTY_CONTEXT
    return context


class CorrelationFilter(logging.Filter):
    """Inject correlation fields into every ``LogRecord`` before formatting."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = get_correlation_context()
        record.request_id = context.request_id
        record.operation = context.operation
        return True


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object | None] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
            "operation": getattr(record, "operation", None),
        }
        if record.exc_info is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def setup_logging(level: int | str = logging.INFO, json_output: bool = False) -> None:
    """Configure the root logger once with correlation-aware handlers."""

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.filters.clear()

    handler = logging.StreamHandler(stream=sys.stderr)
    if json_output:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s "
            "request_id=%(request_id)s operation=%(operation)s "
            "%(message)s",
        )
    handler.setFormatter(formatter)

    correlation_filter = CorrelationFilter()
    handler.addFilter(correlation_filter)
    root_logger.addFilter(correlation_filter)
    root_logger.addHandler(handler)


@contextmanager
def correlation_scope(
    *,
    request_id: str | None = None,
    operation: str | None = None,
) -> Iterator[CorrelationContext]:
    """Apply correlation IDs to the current context for the duration of the block.

    Nested scopes keep the outer ``request_id`` unless overridden; the
    outermost scope mints one when none is given.
    """

    current = get_correlation_context()
    inherited = current.request_id if request_id is None else request_id
    updated = CorrelationContext(
        request_id=inherited or uuid.uuid4().hex[:16],
        operation=current.operation if operation is None else operation,
    )
    token = _CORRELATION_CONTEXT.set(updated)
    try:
        yield updated
    finally:
        _CORRELATION_CONTEXT.reset(token)


__all__ = [
    "CorrelationContext",
    "CorrelationFilter",
    "correlation_scope",
    "get_correlation_context",
    "setup_logging",
]
