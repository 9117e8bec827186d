"""
worker.py
Ingestion worker: converts one source unit into a WorkerResult.

Setup -> Reading -> (Draining <-> Reading) -> Finalizing -> {completed, aborted,
cancelled, io_error, setup_error}
"""
import asyncio
import logging
from typing import Callable, Optional, TextIO

from ..core.models import SourceUnit, WorkerResult, WorkerStatus
from ..core.parser import RowParser
from ..core.schema import TableSchema
from ..exceptions import ConfigurationError, ParseFailure
from ..setup.config import IngestionConfig
from ..setup.logging import emit_log
from .bad_rows import BadRowSink
from .pacer import PendingRequestPacer
from .submitter import Submitter

logger = logging.getLogger(__name__)

ParserFactory = Callable[[TableSchema, IngestionConfig], RowParser]


class IngestionWorker:
    """
    Drives the read -> parse -> submit loop for one source.

    Windows:
        Blank lines are counted in the line number but never parsed and never
        consume `skip_rows` or `max_rows`. `max_rows` caps parse attempts: the
        worker stops reading right after the `max_rows`-th attempt.

    Error budget:
        Parse errors, plus write failures when `count_write_failures` is set,
        may reach `max_errors`; one more aborts the source before any further
        line is read.
    """

    def __init__(
        self,
        source: SourceUnit,
        config: IngestionConfig,
        schema: TableSchema,
        submitter: Submitter,
        cancel_event: Optional[asyncio.Event] = None,
        parser_factory: ParserFactory = RowParser.from_config,
    ):
        self.source = source
        self.config = config
        self.schema = schema
        self.submitter = submitter
        self.cancel_event = cancel_event
        self.parser_factory = parser_factory
        self.pacer = PendingRequestPacer(config.num_futures, config.write_timeout, source.name)
        self.lines_read = 0
        self.rows_submitted = 0
        self.parse_errors = 0

    @property
    def error_count(self) -> int:
        if self.config.count_write_failures:
            return self.parse_errors + self.pacer.failed
        return self.parse_errors

    def budget_exhausted(self) -> bool:
        max_errors = self.config.max_errors
        return max_errors is not None and self.error_count > max_errors

    async def run(self) -> WorkerResult:
        name = self.source.name
        logger.info(f"*** Processing {name}")
        emit_log("source_started", source=name)

        sink = BadRowSink(self.config.bad_dir, name)
        try:
            sink.open()
        except OSError as e:
            logger.error(f"Cannot open bad-row file {sink.path} for {name}: {e}")
            return self._result(WorkerStatus.IO_ERROR, str(e))

        try:
            parser = self.parser_factory(self.schema, self.config)
            try:
                await self.submitter.prepare()
            except ConfigurationError as e:
                logger.error(f"Cannot prepare insert for {name}: {e}")
                return self._result(WorkerStatus.SETUP_ERROR, str(e))

            error = None
            try:
                with self.source.open() as stream:
                    status = await self._consume(stream, parser, sink)
            except (OSError, UnicodeDecodeError) as e:
                logger.error(f"I/O error reading {name} after line {self.lines_read}: {e}")
                status, error = WorkerStatus.IO_ERROR, str(e)
            finally:
                await self.pacer.close()
        finally:
            sink.close()

        result = self._result(status, error)
        if status is WorkerStatus.ABORTED:
            result.error = f"Maximum number of errors exceeded ({self.error_count})"
        logger.info(
            f"*** DONE: {name}  number of lines processed: {self.lines_read} ({result.rows_inserted} inserted)"
        )
        emit_log(
            "source_completed",
            source=name,
            status=status.value,
            lines=self.lines_read,
            rows=self.rows_submitted,
            parse_errors=self.parse_errors,
            write_failures=result.write_failures,
        )
        return result

    async def _consume(self, stream: TextIO, parser: RowParser, sink: BadRowSink) -> WorkerStatus:
        name = self.source.name
        skip_remaining = self.config.skip_rows
        max_rows = self.config.max_rows
        parse_attempts = 0

        for raw in stream:
            self.lines_read += 1
            await self.pacer.tick(self.lines_read)
            if self.budget_exhausted():
                return self._abort()
            if self.cancel_event is not None and self.cancel_event.is_set():
                logger.warning(f"Stopping {name} at line {self.lines_read}: run cancelled")
                return WorkerStatus.CANCELLED

            line = raw.rstrip("\r\n")
            if not line.strip():
                continue
            if skip_remaining > 0:
                skip_remaining -= 1
                continue

            parse_attempts += 1
            try:
                values = parser.parse(line)
            except ParseFailure as e:
                self.parse_errors += 1
                logger.error(f"Error parsing line {self.lines_read} in {name}: {line}")
                logger.debug(f"[Worker] {name}:{self.lines_read}: {e}")
                sink.write(line)
                if self.budget_exhausted():
                    return self._abort()
            else:
                self.pacer.add(self.submitter.submit(values))
                self.rows_submitted += 1
                # let submitted writes and sibling workers make progress
                await asyncio.sleep(0)

            if max_rows is not None and parse_attempts >= max_rows:
                break

        return WorkerStatus.COMPLETED

    def _abort(self) -> WorkerStatus:
        logger.error(f"Maximum number of errors exceeded ({self.error_count}) for {self.source.name}")
        return WorkerStatus.ABORTED

    def _result(self, status: WorkerStatus, error: Optional[str] = None) -> WorkerResult:
        return WorkerResult(
            source_name=self.source.name,
            status=status,
            lines_read=self.lines_read,
            rows_submitted=self.rows_submitted,
            parse_errors=self.parse_errors,
            write_failures=self.pacer.failed,
            write_timeouts=self.pacer.timed_out,
            error=error,
        )
