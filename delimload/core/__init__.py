from .models import (
    DrainReport,
    RunSummary,
    SourceUnit,
    WorkerResult,
    WorkerStatus,
    WriteFailure,
    WriteFailureKind,
)
from .parser import RowParser
from .schema import TableSchema, parse_schema

__all__ = [
    "DrainReport",
    "RunSummary",
    "SourceUnit",
    "WorkerResult",
    "WorkerStatus",
    "WriteFailure",
    "WriteFailureKind",
    "RowParser",
    "TableSchema",
    "parse_schema",
]
