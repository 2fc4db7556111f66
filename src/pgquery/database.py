"""Connection and transaction orchestration over a pool.

Every unit of work acquires exactly one connection and returns it exactly
once: back to the pool normally, or evicted when a failed rollback has
left its session state unknown.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from enum import StrEnum
from typing import TYPE_CHECKING, Any, TypeVar

from pgquery import shaping
from pgquery.errors import AbortConnectionError, ScopeClosedError
from pgquery.executor import CancelToken, PendingQuery, capture_origin, execute
from pgquery.templates import build_statement, coerce_source

if TYPE_CHECKING:
    from pgquery.config import PoolConfig
    from pgquery.db.backend import Connection, Pool
    from pgquery.models.result import Result

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransactionState(StrEnum):
    """Lifecycle of a transaction scope."""

    NOT_STARTED = "not_started"
    IN_TRANSACTION = "in_transaction"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    ABORTED_CONNECTION = "aborted_connection"


class _Queryable:
    """The query operations shared by Database and Scope.

    Each accepts ``(sql, params)``, a SqlTemplate / t-string, or a
    RawFragment, and returns a cancellable PendingQuery.
    """

    def _submit(self, source: Any, params: Sequence[Any], origin: str) -> PendingQuery[Result]:
        raise NotImplementedError

    def query(self, source: Any, params: Sequence[Any] = ()) -> PendingQuery[Result]:
        """Run a statement and return the full Result."""
        return self._submit(source, params, capture_origin())

    def rows(self, source: Any, params: Sequence[Any] = ()) -> PendingQuery[list[dict[str, Any]]]:
        """Run a statement and return all rows."""
        return self._submit(source, params, capture_origin()).then(shaping.rows)

    def row(self, source: Any, params: Sequence[Any] = ()) -> PendingQuery[dict[str, Any] | None]:
        """Run a statement and return the first row, or None."""
        return self._submit(source, params, capture_origin()).then(shaping.row)

    def value(self, source: Any, params: Sequence[Any] = ()) -> PendingQuery[Any]:
        """Run a statement and return the first value of the first row, or None."""
        return self._submit(source, params, capture_origin()).then(shaping.value)

    def column(self, source: Any, params: Sequence[Any] = ()) -> PendingQuery[list[Any]]:
        """Run a statement and return the first column of every row."""
        return self._submit(source, params, capture_origin()).then(shaping.column)


class Scope(_Queryable):
    """Query operations bound to one connection for the length of a scope.

    Queries inside a scope run one at a time; await each before issuing
    the next.
    """

    def __init__(self, connection: Connection, *, transactional: bool = False) -> None:
        self._connection = connection
        self._closed = False
        self.state: TransactionState | None = (
            TransactionState.NOT_STARTED if transactional else None
        )

    def _submit(self, source: Any, params: Sequence[Any], origin: str) -> PendingQuery[Result]:
        if self._closed:
            raise ScopeClosedError("Scope used after its connection was released")
        statement = build_statement(source, params, self._connection)
        token = CancelToken()
        return PendingQuery(execute(self._connection, statement, token, origin), token)

    def _transition(self, state: TransactionState) -> None:
        logger.debug("Transaction %s -> %s", self.state, state)
        self.state = state

    def close(self) -> None:
        """Mark the scope closed; later queries raise ScopeClosedError."""
        self._closed = True


class Database(_Queryable):
    """Pool-backed entry point for queries, connections and transactions.

    Usage:
        db = await Database.create("postgresql://localhost/app")
        n = await db.value(sql("SELECT count(*) FROM {}", identifier("users")))

        async def move(trx):
            await trx.query("UPDATE accounts SET balance = balance - $1 WHERE id = $2", [5, 1])
            await trx.query("UPDATE accounts SET balance = balance + $1 WHERE id = $2", [5, 2])

        await db.transaction(move)
        await db.close()
    """

    def __init__(self, pool: Pool) -> None:
        """Initialize with any object satisfying the Pool protocol."""
        self._pool = pool

    @classmethod
    async def create(cls, config: PoolConfig | str | None = None) -> Database:
        """Open an asyncpg-backed Database.

        ``config`` may be a PoolConfig, a DSN string, or None to read the
        environment.
        """
        from pgquery.config import PoolConfig
        from pgquery.db.connection import create_pool

        if config is None:
            config = PoolConfig.from_env()
        elif isinstance(config, str):
            config = PoolConfig(dsn=config)
        return cls(await create_pool(config))

    @property
    def pool(self) -> Pool:
        """The pool this Database draws connections from."""
        return self._pool

    async def close(self) -> None:
        """Close the underlying pool."""
        await self._pool.close()

    @asynccontextmanager
    async def _acquire(self, token: CancelToken | None = None) -> AsyncIterator[Connection]:
        """Hold one connection; release or evict it on every exit path.

        A token cancelled while acquiring stops the work from running. The
        connection is released before Cancel propagates.
        """
        connection, release = await self._pool.acquire()
        logger.debug("Acquired connection (backend %s)", connection.backend_pid)
        try:
            if token is not None:
                token.raise_if_cancelled()
            yield connection
        except BaseException as e:
            if isinstance(e, AbortConnectionError):
                logger.warning(
                    "Evicting connection (backend %s) after failed rollback",
                    connection.backend_pid,
                )
                await release(e)
            else:
                await release(None)
            raise
        else:
            await release(None)
        logger.debug("Released connection (backend %s)", connection.backend_pid)

    def _submit(self, source: Any, params: Sequence[Any], origin: str) -> PendingQuery[Result]:
        source = coerce_source(source, params)
        token = CancelToken()

        async def run() -> Result:
            async with self._acquire(token) as connection:
                statement = build_statement(source, params, connection)
                return await execute(connection, statement, token, origin)

        return PendingQuery(run(), token)

    async def _run_scope(
        self, work: Callable[[Scope], Awaitable[T]], *, transactional: bool = False
    ) -> T:
        async with self._acquire() as connection:
            scope = Scope(connection, transactional=transactional)
            try:
                return await work(scope)
            finally:
                scope.close()

    async def connection(self, work: Callable[[Scope], Awaitable[T]]) -> T:
        """Run ``work`` with a Scope bound to a single connection."""
        return await self._run_scope(work)

    async def transaction(self, work: Callable[[Scope], Awaitable[T]]) -> T:
        """Run ``work`` inside BEGIN/COMMIT on a single connection.

        Any error from ``work`` or COMMIT rolls back and is re-raised. If the
        rollback fails too, AbortConnectionError is raised and the connection
        is evicted from the pool.
        """

        async def in_transaction(trx: Scope) -> T:
            await trx.query("BEGIN")
            trx._transition(TransactionState.IN_TRANSACTION)
            try:
                result = await work(trx)
                await trx.query("COMMIT")
            except BaseException as e:
                await _rollback(trx, e)
                raise
            trx._transition(TransactionState.COMMITTED)
            return result

        return await self._run_scope(in_transaction, transactional=True)


async def _rollback(trx: Scope, original: BaseException) -> None:
    try:
        await trx.query("ROLLBACK")
    except Exception as rollback_error:
        trx._transition(TransactionState.ABORTED_CONNECTION)
        logger.warning("Rollback failed after %r: %r", original, rollback_error)
        raise AbortConnectionError(original, rollback_error) from original
    trx._transition(TransactionState.ROLLED_BACK)
