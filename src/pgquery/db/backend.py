"""Pool and connection protocols — the boundary to the database driver.

The orchestrator and executor program against these protocols. Each
driver adapter (asyncpg, or a fake in tests) provides a concrete
implementation and reports backend failures as DriverError.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pgquery.models.result import Result
    from pgquery.templates import Statement

# Called exactly once per acquired connection: with no error to return it
# to the pool, with an AbortConnectionError to evict it.
Release = Callable[[BaseException | None], Awaitable[None]]


@runtime_checkable
class Connection(Protocol):
    """A single pooled connection."""

    @property
    def active_statement(self) -> Statement | None:
        """The statement currently running on this connection, if any."""
        ...

    @property
    def backend_pid(self) -> int | None:
        """Server process id, used for out-of-band cancellation."""
        ...

    async def execute(self, statement: Statement) -> Result:
        """Run one statement. Raises DriverError if the backend rejects it."""
        ...

    async def cancel_backend(self) -> None:
        """Ask the server, out of band, to cancel the running statement."""
        ...


@runtime_checkable
class Pool(Protocol):
    """A pool handing out one connection per concurrent scope."""

    async def acquire(self) -> tuple[Connection, Release]:
        """Wait for a free connection. Raises DriverError if none can be opened."""
        ...

    @property
    def size(self) -> int:
        """Number of live connections held by the pool."""
        ...

    async def close(self) -> None:
        """Close all connections."""
        ...
