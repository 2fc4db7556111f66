"""Shared test fixtures."""

import asyncio

import pytest_asyncio

from pgquery.database import Database
from pgquery.errors import AbortConnectionError, DriverError
from pgquery.models.result import Result


class FakeConnection:
    """Scriptable stand-in for a pooled connection.

    ``SELECT pg_sleep(...)`` blocks until cancel_backend() is called and
    then fails the way the server reports a cancelled statement. SQL listed
    in ``pool.blocking`` waits for its event and then succeeds.
    """

    def __init__(self, pool, pid: int):
        self.pool = pool
        self.pid = pid
        self.executed: list = []
        self.broken = False
        self.cancel_requests = 0
        self._active = None
        self._cancelled = asyncio.Event()

    @property
    def active_statement(self):
        return self._active

    @property
    def backend_pid(self):
        return self.pid

    async def execute(self, statement):
        if self.broken:
            raise DriverError("connection is closed")
        self.executed.append(statement)
        self._active = statement
        try:
            if statement.sql in self.pool.blocking:
                await self.pool.blocking[statement.sql].wait()
            elif statement.sql.startswith("SELECT pg_sleep"):
                await self._cancelled.wait()
                raise DriverError("canceling statement due to user request")
            if statement.sql in self.pool.errors:
                raise DriverError(self.pool.errors[statement.sql])
            if statement.sql in self.pool.results:
                return self.pool.results[statement.sql]
            return Result(command=statement.sql.split()[0].upper(), row_count=0, rows=[])
        finally:
            self._active = None

    async def cancel_backend(self):
        self.cancel_requests += 1
        await self.pool.cancel_gate.wait()
        self.pool.events.append(("cancel", self.pid))
        if self.pool.cancel_error is not None:
            raise self.pool.cancel_error
        self._cancelled.set()

    @property
    def executed_sql(self) -> list[str]:
        return [s.sql for s in self.executed]


class FakePool:
    """In-memory pool recording every acquire, release and eviction."""

    def __init__(self, max_size: int = 2):
        self.results: dict[str, Result] = {}
        self.errors: dict[str, str] = {}
        self.blocking: dict[str, asyncio.Event] = {}
        self.cancel_gate = asyncio.Event()
        self.cancel_gate.set()
        self.cancel_error: Exception | None = None
        self.events: list[tuple[str, int]] = []
        self.connections: list[FakeConnection] = []
        self.gate = asyncio.Event()
        self.gate.set()
        self._idle: list[FakeConnection] = []
        self._slots = asyncio.Semaphore(max_size)
        self._next_pid = 100
        self.closed = False

    async def acquire(self):
        await self.gate.wait()
        await self._slots.acquire()
        if self._idle:
            conn = self._idle.pop()
        else:
            self._next_pid += 1
            conn = FakeConnection(self, self._next_pid)
            self.connections.append(conn)
        self.events.append(("acquire", conn.pid))
        released = False

        async def release(error=None):
            nonlocal released
            assert not released, "connection released twice"
            released = True
            if isinstance(error, AbortConnectionError):
                self.events.append(("evict", conn.pid))
                conn.broken = True
                self.connections.remove(conn)
            else:
                self.events.append(("release", conn.pid))
                self._idle.append(conn)
            self._slots.release()

        return conn, release

    @property
    def size(self) -> int:
        return len(self.connections)

    async def close(self):
        self.closed = True

    def result(self, sql: str, rows: list[dict], command: str = "SELECT") -> None:
        self.results[sql] = Result(command=command, row_count=len(rows), rows=rows)


async def wait_until(predicate, attempts: int = 100) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


@pytest_asyncio.fixture
async def pool():
    """Fake pool with two connection slots."""
    return FakePool()


@pytest_asyncio.fixture
async def db(pool):
    """Database backed by the fake pool."""
    return Database(pool)
