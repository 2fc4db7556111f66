"""Pool and connection backends."""

from pgquery.db.backend import Connection, Pool, Release
from pgquery.db.postgres_backend import AsyncpgConnection, AsyncpgPool

__all__ = ["AsyncpgConnection", "AsyncpgPool", "Connection", "Pool", "Release"]
