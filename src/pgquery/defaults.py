"""Process-wide default Database.

Nothing is created implicitly: call ``await init()`` once at startup,
``await shutdown()`` on exit. The module-level query functions delegate to
the instance built by ``init()``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any, TypeVar

from pgquery.database import Database
from pgquery.errors import NotInitializedError

if TYPE_CHECKING:
    from pgquery.config import PoolConfig
    from pgquery.database import Scope
    from pgquery.executor import PendingQuery
    from pgquery.models.result import Result

logger = logging.getLogger(__name__)

T = TypeVar("T")

_default: Database | None = None


async def init(config: PoolConfig | str | None = None) -> Database:
    """Create the default Database; ``config`` as for Database.create."""
    global _default
    if _default is not None:
        raise RuntimeError("pgquery default database is already initialized")
    _default = await Database.create(config)
    logger.info("Default database initialized")
    return _default


def set_database(db: Database | None) -> None:
    """Install an existing Database as the default (or clear it)."""
    global _default
    _default = db


def get_database() -> Database:
    """Return the default Database or raise NotInitializedError."""
    if _default is None:
        raise NotInitializedError("Call pgquery.init() before using the default database")
    return _default


async def shutdown() -> None:
    """Close and forget the default Database."""
    global _default
    if _default is None:
        return
    db, _default = _default, None
    await db.close()


def query(source: Any, params: Sequence[Any] = ()) -> PendingQuery[Result]:
    """Run a statement on the default Database."""
    return get_database().query(source, params)


def rows(source: Any, params: Sequence[Any] = ()) -> PendingQuery[list[dict[str, Any]]]:
    """All rows, from the default Database."""
    return get_database().rows(source, params)


def row(source: Any, params: Sequence[Any] = ()) -> PendingQuery[dict[str, Any] | None]:
    """First row or None, from the default Database."""
    return get_database().row(source, params)


def value(source: Any, params: Sequence[Any] = ()) -> PendingQuery[Any]:
    """First value or None, from the default Database."""
    return get_database().value(source, params)


def column(source: Any, params: Sequence[Any] = ()) -> PendingQuery[list[Any]]:
    """First column, from the default Database."""
    return get_database().column(source, params)


async def connection(work: Callable[[Scope], Awaitable[T]]) -> T:
    """Run work on one connection of the default Database."""
    return await get_database().connection(work)


async def transaction(work: Callable[[Scope], Awaitable[T]]) -> T:
    """Run work in a transaction on the default Database."""
    return await get_database().transaction(work)
