"""Fixtures for tests against a live PostgreSQL server.

Skipped unless PGQUERY_TEST_DATABASE_URL points at a database the tests
may create and drop tables in.
"""

import os

import pytest
import pytest_asyncio

from pgquery.config import PoolConfig
from pgquery.database import Database

_URL = os.environ.get("PGQUERY_TEST_DATABASE_URL")


@pytest_asyncio.fixture
async def pg():
    """Database with a fixed-size pool of three connections on the test server."""
    if not _URL:
        pytest.skip("PGQUERY_TEST_DATABASE_URL not set")
    db = await Database.create(PoolConfig(dsn=_URL, min_size=3, max_size=3))
    yield db
    await db.close()
