"""Statement execution with cooperative cancellation.

A query runs as an asyncio task wrapped in a PendingQuery. Cancellation is
requested through a CancelToken shared by everything working on behalf of
that query: the orchestrator checks it after acquiring a connection, the
executor checks it around the statement and registers an out-of-band
backend cancel while the statement is running.
"""

from __future__ import annotations

import asyncio
import logging
import traceback
from collections.abc import Awaitable, Callable, Coroutine, Generator
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pgquery.errors import Cancel, DriverError, SqlError

if TYPE_CHECKING:
    from pgquery.db.backend import Connection
    from pgquery.models.result import Result
    from pgquery.templates import Statement

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

CancelAction = Callable[[], Awaitable[None]]


class CancelToken:
    """Cancellation flag for one query, with actions to run when it is set."""

    def __init__(self) -> None:
        self._cancelled = False
        self._actions: list[CancelAction] = []
        self.error = Cancel()

    @property
    def cancelled(self) -> bool:
        """True once cancel() has been called."""
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        """Raise the token's Cancel error if it has been set."""
        if self._cancelled:
            raise self.error

    def on_cancel(self, action: CancelAction) -> Callable[[], None]:
        """Register an action to run on cancel; returns a function removing it."""
        self._actions.append(action)

        def remove() -> None:
            if action in self._actions:
                self._actions.remove(action)

        return remove

    async def cancel(self) -> None:
        """Set the flag and run the registered actions. Safe to call twice."""
        if self._cancelled:
            return
        self._cancelled = True
        actions, self._actions = self._actions, []
        for action in actions:
            await action()


class PendingQuery(Generic[T]):
    """An in-flight query that can be awaited or cancelled.

    Once the token is set, any result or error still to come is replaced by
    the token's Cancel error. Cancelling a query that already settled does
    nothing.
    """

    def __init__(self, coro: Coroutine[Any, Any, T], token: CancelToken) -> None:
        self._token = token
        self._task: asyncio.Future[T] = asyncio.ensure_future(self._settle(coro))

    async def _settle(self, coro: Coroutine[Any, Any, T]) -> T:
        try:
            result = await coro
        except Cancel:
            raise
        except Exception as e:
            if self._token.cancelled:
                raise self._token.error from e
            raise
        self._token.raise_if_cancelled()
        return result

    def __await__(self) -> Generator[Any, None, T]:
        return self._task.__await__()

    def done(self) -> bool:
        """True once the query has settled."""
        return self._task.done()

    async def cancel(self) -> None:
        """Request cancellation and wait for any backend cancel to be sent."""
        if self._task.done():
            return
        logger.info("Cancelling query")
        await self._token.cancel()

    def then(self, fn: Callable[[T], U]) -> PendingQuery[U]:
        """Derive a query whose result is ``fn(result)``, sharing cancellation."""

        async def mapped() -> U:
            return fn(await self._task)

        return PendingQuery(mapped(), self._token)


def capture_origin(skip: int = 1) -> str:
    """Format the caller's stack, leaving out the innermost ``skip`` frames."""
    frames = traceback.extract_stack()[: -(skip + 1)]
    return "".join(traceback.format_list(frames))


async def execute(
    connection: Connection,
    statement: Statement,
    token: CancelToken | None = None,
    origin_stack: str | None = None,
) -> Result:
    """Run one statement on a connection.

    Driver errors become SqlError carrying the statement, its parameters
    and the call site that issued it.
    """
    if token is None:
        token = CancelToken()
    token.raise_if_cancelled()
    inflight: list[asyncio.Future[None]] = []

    async def cancel_if_active() -> None:
        if connection.active_statement is not statement:
            return
        request = asyncio.ensure_future(_cancel_backend(connection))
        inflight.append(request)
        await asyncio.shield(request)

    remove = token.on_cancel(cancel_if_active)
    try:
        logger.debug("Executing %r with %d params", statement.sql, len(statement.params))
        result = await connection.execute(statement)
    except DriverError as e:
        if token.cancelled:
            raise token.error from e
        raise SqlError(str(e), statement.sql, statement.params, origin_stack) from e
    finally:
        remove()
        # The connection must not go back to the pool while a cancel for its pid is pending
        if inflight:
            await asyncio.shield(inflight[0])
    token.raise_if_cancelled()
    return result


async def _cancel_backend(connection: Connection) -> None:
    pid = connection.backend_pid
    logger.info("Sending cancel request for backend %s", pid)
    try:
        await connection.cancel_backend()
    except Exception:
        # Best effort: the query still settles as Cancel
        logger.warning("Cancel request for backend %s failed", pid, exc_info=True)
