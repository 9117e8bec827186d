"""
Bounded-concurrency ingestion pipeline: dispatcher, workers, pacing and sinks.
"""

from .bad_rows import BadRowSink
from .dispatcher import SourceDispatcher, discover_sources
from .pacer import PendingRequestPacer
from .submitter import WriteSubmitter
from .worker import IngestionWorker

__all__ = [
    "BadRowSink",
    "SourceDispatcher",
    "discover_sources",
    "PendingRequestPacer",
    "WriteSubmitter",
    "IngestionWorker",
]
