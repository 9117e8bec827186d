"""
Value types passed between the dispatcher, the workers and the pacer.
"""
import sys
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional, TextIO

STDIN_NAME = "stdin"


class WorkerStatus(str, Enum):
    COMPLETED = "completed"
    ABORTED = "aborted"        # error budget exhausted
    CANCELLED = "cancelled"    # stopped because another source aborted the run
    IO_ERROR = "io_error"      # source or bad-row sink could not be opened/read
    SETUP_ERROR = "setup_error"  # statement could not be prepared
    FAILED = "failed"          # unexpected error inside the worker


class WriteFailureKind(str, Enum):
    ERROR = "error"
    TIMEOUT = "timeout"


@dataclass
class SourceUnit:
    """One input stream: a file on disk or standard input."""

    name: str
    path: Optional[Path] = None
    stream: Optional[TextIO] = None
    encoding: str = "utf-8"

    @classmethod
    def from_path(cls, path: Path, encoding: str = "utf-8") -> "SourceUnit":
        return cls(name=path.name, path=path, encoding=encoding)

    @classmethod
    def stdin(cls) -> "SourceUnit":
        return cls(name=STDIN_NAME, stream=sys.stdin)

    @contextmanager
    def open(self) -> Iterator[TextIO]:
        """Yield a line stream; files are closed on exit, caller-owned streams are not."""
        if self.stream is not None:
            yield self.stream
            return
        with open(self.path, "r", encoding=self.encoding, newline="") as f:
            yield f


@dataclass
class WriteFailure:
    kind: WriteFailureKind
    message: str


@dataclass
class DrainReport:
    """Outcome of one drain: every handle in it resolved, failed or timed out."""

    succeeded: int = 0
    failures: List[WriteFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def timed_out(self) -> int:
        return sum(1 for f in self.failures if f.kind is WriteFailureKind.TIMEOUT)


@dataclass
class WorkerResult:
    source_name: str
    status: WorkerStatus
    lines_read: int = 0
    rows_submitted: int = 0
    parse_errors: int = 0
    write_failures: int = 0
    write_timeouts: int = 0
    error: Optional[str] = None

    @property
    def rows_inserted(self) -> int:
        return self.rows_submitted - self.write_failures

    @property
    def ok(self) -> bool:
        return self.status is WorkerStatus.COMPLETED


@dataclass
class RunSummary:
    """Aggregate of every WorkerResult of one run."""

    results: List[WorkerResult] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return sum(r.rows_submitted for r in self.results)

    @property
    def total_inserted(self) -> int:
        return sum(r.rows_inserted for r in self.results)

    @property
    def aborted(self) -> List[WorkerResult]:
        return [r for r in self.results if r.status is WorkerStatus.ABORTED]

    @property
    def failed(self) -> List[WorkerResult]:
        return [r for r in self.results if r.status in (WorkerStatus.IO_ERROR, WorkerStatus.SETUP_ERROR, WorkerStatus.FAILED)]

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)
