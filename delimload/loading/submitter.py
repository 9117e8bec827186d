"""
submitter.py
Fire-and-forget INSERTs against the shared asyncpg pool.

Each worker owns one WriteSubmitter; all of them share the pool and the same
statement text. A submitted write runs as an asyncio task until a drain
awaits it.
"""
import asyncio
import logging
from typing import Any, Protocol, Sequence

import asyncpg

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

WriteHandle = asyncio.Future


class Submitter(Protocol):
    """What a worker needs from the database side."""

    async def prepare(self) -> None:
        ...

    def submit(self, values: Sequence[Any]) -> WriteHandle:
        ...


class WriteSubmitter:
    def __init__(self, pool: asyncpg.Pool, statement: str, column_count: int):
        self.pool = pool
        self.statement = statement
        self.column_count = column_count

    async def prepare(self) -> None:
        """
        Prepare the statement once on a pool connection so schema mismatches
        surface before the first row is read.

        Raises:
            ConfigurationError: The statement's parameter count does not match
                the declared columns, the server rejected the statement or the
                connection was lost.
        """
        try:
            async with self.pool.acquire() as conn:
                prepared = await conn.prepare(self.statement)
                parameters = prepared.get_parameters()
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            raise ConfigurationError(f"Cannot prepare {self.statement!r}: {e}") from e
        if len(parameters) != self.column_count:
            raise ConfigurationError(
                f"Statement expects {len(parameters)} parameters, schema declares {self.column_count} columns"
            )
        logger.debug(f"[WriteSubmitter] Prepared: {self.statement}")

    def submit(self, values: Sequence[Any]) -> WriteHandle:
        """Schedule one INSERT and return its handle without waiting for it."""
        return asyncio.ensure_future(self.pool.execute(self.statement, *values))
