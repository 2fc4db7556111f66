"""pgquery error types.

All custom exceptions inherit from PgQueryError so callers can catch
anything raised by the library in one place.
"""

from __future__ import annotations

import traceback
from collections.abc import Sequence
from typing import Any


class PgQueryError(Exception):
    """Base exception for all pgquery errors."""


class DriverError(PgQueryError):
    """The backend or the transport rejected a request.

    Raised by pool/connection adapters; the executor turns it into
    SqlError once it knows which statement was running.
    """


class SqlError(PgQueryError):
    """A statement was rejected by the backend."""

    def __init__(
        self,
        driver_message: str,
        sql: str,
        params: Sequence[Any] = (),
        origin_stack: str | None = None,
    ) -> None:
        super().__init__(_format_sql_error(driver_message, sql, params))
        self.driver_message = driver_message
        self.sql = sql
        self.params = list(params)
        self.origin_stack = origin_stack
        if origin_stack:
            self.add_note("Query issued at:\n" + origin_stack.rstrip("\n"))


class Cancel(PgQueryError):
    """The operation was cancelled by the caller."""

    def __init__(self, message: str = "Query cancelled") -> None:
        super().__init__(message)


class AbortConnectionError(PgQueryError):
    """Rollback failed after an error inside a transaction.

    The connection is in an unknown server-side state and must be evicted
    from the pool instead of being reused.
    """

    abort_connection = True

    def __init__(self, original: BaseException, rollback_error: BaseException) -> None:
        super().__init__(
            "Failed to execute rollback after error\n"
            + _describe(original)
            + "\n\n"
            + _describe(rollback_error)
        )
        self.original = original
        self.rollback_error = rollback_error


class MalformedTemplate(PgQueryError, TypeError):
    """A SQL template does not have exactly one more segment than values."""


class UnsupportedLiteralType(PgQueryError, ValueError):
    """A value cannot be rendered as a SQL literal or identifier."""


class ScopeClosedError(PgQueryError):
    """A connection or transaction scope was used after it ended."""


class NotInitializedError(PgQueryError):
    """The default database was used before pgquery.init()."""


def _format_sql_error(driver_message: str, sql: str, params: Sequence[Any]) -> str:
    lines = [f"SQL Error: {driver_message}", sql]
    if params:
        lines.append("Query parameters:")
        for index, value in enumerate(params, start=1):
            lines.append(f"  ${index}: {type(value).__name__} {value!r}")
    return "\n".join(lines)


def _describe(exc: BaseException) -> str:
    """Render an exception as its message followed by its traceback."""
    return "".join(traceback.format_exception(exc)).rstrip("\n")
