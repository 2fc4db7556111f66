"""Pool creation for the asyncpg backend."""

import logging

import asyncpg

from pgquery.config import PoolConfig
from pgquery.db.postgres_backend import DRIVER_ERRORS, AsyncpgPool
from pgquery.errors import DriverError

logger = logging.getLogger(__name__)


async def create_pool(config: PoolConfig) -> AsyncpgPool:
    """Open an asyncpg pool described by ``config``."""
    logger.info("Opening connection pool (max_size=%d)", config.max_size)
    try:
        pool = await asyncpg.create_pool(
            config.dsn,
            min_size=config.min_size,
            max_size=config.max_size,
            max_inactive_connection_lifetime=config.idle_timeout,
            timeout=config.connect_timeout,
        )
    except DRIVER_ERRORS as e:
        raise DriverError(str(e)) from e
    return AsyncpgPool(pool, config)
