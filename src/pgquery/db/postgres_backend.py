"""asyncpg implementation of the Pool and Connection protocols.

Statements are prepared so that row-returning commands and plain commands
go through the same path; the status tag (``"INSERT 0 1"``) provides the
command name and the affected row count.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import asyncpg

from pgquery.errors import AbortConnectionError, DriverError
from pgquery.models.result import Result

if TYPE_CHECKING:
    from pgquery.config import PoolConfig
    from pgquery.db.backend import Release
    from pgquery.templates import Statement

logger = logging.getLogger(__name__)

DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def _parse_status(status: str | None, fetched: int) -> tuple[str, int]:
    """Split a status tag into (command, row count).

    Examples: "INSERT 0 1" → ("INSERT", 1), "SELECT 3" → ("SELECT", 3),
    "CREATE TABLE" → ("CREATE", -1). A missing status falls back to the
    number of rows fetched.
    """
    if not status:
        return "", fetched
    parts = status.split()
    command = parts[0]
    if len(parts) >= 2:
        try:
            return command, int(parts[-1])
        except ValueError:
            pass
    return command, -1


class AsyncpgConnection:
    """Wraps an asyncpg.Connection checked out of an AsyncpgPool."""

    def __init__(self, conn: asyncpg.Connection, pool: AsyncpgPool) -> None:
        """Initialize with the raw connection and the pool it came from."""
        self._conn = conn
        self._pool = pool
        self._active: Statement | None = None

    @property
    def active_statement(self) -> Statement | None:
        """The statement currently executing, if any."""
        return self._active

    @property
    def backend_pid(self) -> int | None:
        """Server process id of this connection."""
        return self._conn.get_server_pid()

    @property
    def raw(self) -> asyncpg.Connection:
        """The underlying asyncpg connection."""
        return self._conn

    async def execute(self, statement: Statement) -> Result:
        """Run one statement and collect its rows and status."""
        self._active = statement
        try:
            prepared = await self._conn.prepare(statement.sql)
            records = await prepared.fetch(*statement.params)
            command, row_count = _parse_status(prepared.get_statusmsg(), len(records))
        except DRIVER_ERRORS as e:
            raise DriverError(str(e)) from e
        finally:
            self._active = None
        return Result(
            command=command,
            row_count=row_count,
            rows=[dict(record.items()) for record in records],
        )

    async def cancel_backend(self) -> None:
        """Cancel the running statement via pg_cancel_backend on a sibling connection."""
        pid = self.backend_pid
        if pid is None:
            return
        await self._pool.cancel_backend(pid)


class AsyncpgPool:
    """Pool protocol implementation over asyncpg.Pool.

    Releasing with an AbortConnectionError terminates the connection before
    handing it back, so asyncpg drops it instead of reusing it.
    """

    def __init__(self, pool: asyncpg.Pool, config: PoolConfig) -> None:
        """Initialize with an open asyncpg pool and the config that built it."""
        self._pool = pool
        self._config = config

    async def acquire(self) -> tuple[AsyncpgConnection, Release]:
        """Check out a connection and a one-shot release function."""
        try:
            conn = await self._pool.acquire()
        except DRIVER_ERRORS as e:
            raise DriverError(str(e)) from e
        released = False

        async def release(error: BaseException | None = None) -> None:
            nonlocal released
            if released:
                return
            released = True
            if isinstance(error, AbortConnectionError):
                logger.warning("Terminating connection (backend %s)", conn.get_server_pid())
                conn.terminate()
            await self._pool.release(conn)

        return AsyncpgConnection(conn, self), release

    @property
    def size(self) -> int:
        """Number of connections currently open in the pool."""
        return self._pool.get_size()

    async def cancel_backend(self, pid: int) -> None:
        """Ask the server to cancel whatever backend ``pid`` is running.

        Uses a fresh connection so a full pool cannot block the request.
        """
        try:
            conn = await asyncpg.connect(self._config.dsn, timeout=self._config.connect_timeout)
            try:
                await conn.execute("SELECT pg_cancel_backend($1)", pid)
            finally:
                await conn.close()
        except DRIVER_ERRORS as e:
            raise DriverError(str(e)) from e

    async def close(self) -> None:
        """Close the connection pool."""
        await self._pool.close()
