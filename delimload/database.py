"""
asyncpg connection pool bootstrap.

The pool is the one connection handle shared by every worker of a run.
"""
import logging

import asyncpg

from .setup.config import DatabaseConfig

logger = logging.getLogger(__name__)


async def create_pool(dsn: str, min_size: int = 1, max_size: int = 10, command_timeout: float = 60.0) -> asyncpg.Pool:
    return await asyncpg.create_pool(
        dsn,
        min_size=min_size,
        max_size=max_size,
        command_timeout=command_timeout,
        server_settings={'application_name': 'delimload'},
    )


async def create_pool_from_config(database: DatabaseConfig, num_threads: int) -> asyncpg.Pool:
    max_size = database.pool_max_size(num_threads)
    min_size = min(database.async_pool_min_size, max_size)
    logger.info(f"[Database] Creating asyncpg pool for {database.redacted()} (min: {min_size}, max: {max_size})")
    try:
        pool = await create_pool(
            database.get_connection_string(),
            min_size=min_size,
            max_size=max_size,
            command_timeout=database.command_timeout,
        )
    except (OSError, asyncpg.PostgresError) as e:
        logger.error(f"[Database] Failed to create asyncpg pool: {e}")
        raise
    logger.info("[Database] AsyncPG pool created successfully")
    return pool
