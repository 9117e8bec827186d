"""
dispatcher.py
Turns an input target into source units, runs one IngestionWorker per unit with
bounded concurrency, and aggregates their results.
"""
import asyncio
import logging
from pathlib import Path
from typing import Callable, List, Union

from ..core.models import STDIN_NAME, RunSummary, SourceUnit, WorkerResult, WorkerStatus
from ..core.parser import RowParser
from ..core.schema import parse_schema
from ..exceptions import EmptyDirectoryError, SourceNotFoundError
from ..setup.config import AbortScope, IngestionConfig
from ..setup.logging import emit_log
from ..utils.files import list_regular_files
from .submitter import Submitter
from .worker import IngestionWorker, ParserFactory

logger = logging.getLogger(__name__)

# (statement, column_count) -> worker-local submitter bound to the shared pool
SubmitterFactory = Callable[[str, int], Submitter]

Target = Union[str, Path]


def is_stdin(target: Target) -> bool:
    return str(target).lower() in (STDIN_NAME, "-")


def discover_sources(target: Target, encoding: str = "utf-8") -> List[SourceUnit]:
    """
    Resolve `target` into source units.

    `stdin`/`-` gives one stdin unit, a regular file gives one unit and a
    directory gives one unit per immediate regular file, in no particular order.

    Raises:
        SourceNotFoundError: `target` is none of the above.
        EmptyDirectoryError: The directory holds no regular files.
    """
    if is_stdin(target):
        return [SourceUnit.stdin()]

    path = Path(target)
    if path.is_file():
        return [SourceUnit.from_path(path, encoding)]
    if path.is_dir():
        files = list_regular_files(path)
        if not files:
            raise EmptyDirectoryError(f"The directory supplied is empty: {path}")
        return [SourceUnit.from_path(f, encoding) for f in files]
    raise SourceNotFoundError(f"Input must be a file, a directory or stdin: {target}")


class SourceDispatcher:
    """
    Runs the workers of one load.

    The table declaration is parsed and the INSERT statement derived once here;
    each worker gets its own parser and submitter built from them.
    """

    def __init__(self, config: IngestionConfig, parser_factory: ParserFactory = RowParser.from_config):
        """Raises SchemaError when the table declaration is invalid."""
        self.config = config
        self.schema = parse_schema(config.schema_text)
        self.statement = self.schema.insert_statement()
        self.parser_factory = parser_factory

    async def run(self, target: Target, submitter_factory: SubmitterFactory) -> RunSummary:
        return await self.run_sources(discover_sources(target), submitter_factory)

    async def run_sources(self, sources: List[SourceUnit], submitter_factory: SubmitterFactory) -> RunSummary:
        """A single source runs on its own; several share a pool of `num_threads` slots."""
        cancel_event = asyncio.Event()

        if len(sources) == 1:
            results = [await self._run_worker(sources[0], submitter_factory, cancel_event)]
        else:
            results = await self._run_pool(sources, submitter_factory, cancel_event)

        summary = RunSummary(results)
        logger.info(f"Total rows inserted: {summary.total_inserted}")
        emit_log(
            "run_completed",
            sources=len(results),
            rows_submitted=summary.total_rows,
            rows_inserted=summary.total_inserted,
            aborted=[r.source_name for r in summary.aborted],
            failed=[r.source_name for r in summary.failed],
        )
        return summary

    async def _run_pool(
        self,
        sources: List[SourceUnit],
        submitter_factory: SubmitterFactory,
        cancel_event: asyncio.Event,
    ) -> List[WorkerResult]:
        semaphore = asyncio.Semaphore(self.config.num_threads)
        logger.info(f"Processing {len(sources)} files with concurrency={self.config.num_threads}")

        async def process_source(source: SourceUnit) -> WorkerResult:
            async with semaphore:
                if cancel_event.is_set():
                    return WorkerResult(source.name, WorkerStatus.CANCELLED)
                return await self._run_worker(source, submitter_factory, cancel_event)

        return list(await asyncio.gather(*(process_source(s) for s in sources)))

    async def _run_worker(
        self,
        source: SourceUnit,
        submitter_factory: SubmitterFactory,
        cancel_event: asyncio.Event,
    ) -> WorkerResult:
        """Run one worker; an unexpected exception becomes a FAILED result for that source."""
        try:
            result = await self._build_worker(source, submitter_factory, cancel_event).run()
        except Exception as e:
            logger.error(f"✗ Failed: {source.name} - {e!r}")
            return WorkerResult(source.name, WorkerStatus.FAILED, error=str(e))
        if result.status is WorkerStatus.ABORTED and self.config.abort_scope is AbortScope.RUN:
            logger.warning(f"Error budget exhausted for {source.name}; cancelling remaining sources")
            cancel_event.set()
        return result

    def _build_worker(
        self,
        source: SourceUnit,
        submitter_factory: SubmitterFactory,
        cancel_event: asyncio.Event,
    ) -> IngestionWorker:
        return IngestionWorker(
            source,
            self.config,
            self.schema,
            submitter_factory(self.statement, len(self.schema.columns)),
            cancel_event=cancel_event,
            parser_factory=self.parser_factory,
        )
