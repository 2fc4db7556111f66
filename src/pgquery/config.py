"""Pool configuration, with environment-variable defaults."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field


def get_database_url() -> str | None:
    """Return the connection string from DATABASE_URL, if set."""
    return os.environ.get("DATABASE_URL") or None


def get_pool_size() -> int:
    """Return the maximum pool size from PG_POOL_SIZE."""
    return int(os.environ.get("PG_POOL_SIZE", "10"))


def get_idle_timeout() -> float:
    """Return seconds before an idle pooled connection is closed, from PG_IDLE_TIMEOUT."""
    return float(os.environ.get("PG_IDLE_TIMEOUT", "300.0"))


def get_connect_timeout() -> float:
    """Return the connection timeout in seconds from PG_CONNECT_TIMEOUT."""
    return float(os.environ.get("PG_CONNECT_TIMEOUT", "60.0"))


class PoolConfig(BaseModel):
    """Settings for the asyncpg connection pool.

    A missing ``dsn`` lets asyncpg fall back to the libpq environment
    variables (PGHOST, PGUSER, ...).
    """

    dsn: str | None = None
    min_size: int = Field(default=1, ge=0)
    max_size: int = Field(default=10, ge=1)
    idle_timeout: float = Field(default=300.0, ge=0.0)
    connect_timeout: float = Field(default=60.0, gt=0.0)

    @classmethod
    def from_env(cls) -> PoolConfig:
        """Build a config from DATABASE_URL and the PG_* pool variables."""
        return cls(
            dsn=get_database_url(),
            max_size=get_pool_size(),
            idle_timeout=get_idle_timeout(),
            connect_timeout=get_connect_timeout(),
        )
