"""Tagged error values for every failure the custody gateway can report.

Callers match on ``CustodyError.kind`` rather than on exception messages;
upstream Vault error bodies are not stable enough to parse.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorKind(StrEnum):
    unauthorized = "unauthorized"
    forbidden = "forbidden"
    not_found = "not_found"
    protocol_error = "protocol_error"
    internal_error = "internal_error"


class CustodyError(RuntimeError):
    """A single classified failure from a gateway, validator or transport call."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        upstream_status: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.upstream_status = upstream_status
        self.context: dict[str, Any] = dict(context or {})

    def __repr__(self) -> str:
        return (
            f"CustodyError(kind={self.kind.value!r}, "
            f"upstream_status={self.upstream_status!r}, message={str(self)!r})"
        )


def classify_status(status: int) -> ErrorKind:
    """Map a non-2xx HTTP status to its error kind."""
    if status == 401:
        return ErrorKind.unauthorized
    if status == 403:
        return ErrorKind.forbidden
    if status == 404:
        return ErrorKind.not_found
    return ErrorKind.internal_error


def protocol_error(message: str, **context: Any) -> CustodyError:
    return CustodyError(ErrorKind.protocol_error, message, context=context)


__all__ = ["CustodyError", "ErrorKind", "classify_status", "protocol_error"]
