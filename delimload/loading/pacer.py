"""
pacer.py
Bounds the number of outstanding writes a worker holds.

The pacer is a periodic full barrier rather than a sliding window: every
`threshold`-th line read triggers a drain that waits for every outstanding
write, and the worker calls `close()` for one last drain at the end of its
source. The outstanding count may grow within a period but never crosses a
period boundary.
"""
import asyncio
import logging
from typing import List, Optional

from ..core.models import DrainReport, WriteFailure, WriteFailureKind
from .submitter import WriteHandle

logger = logging.getLogger(__name__)


class PendingRequestPacer:
    def __init__(self, threshold: int, timeout: Optional[float] = None, source_name: str = ""):
        if threshold <= 0:
            raise ValueError("Pacing threshold must be positive")
        self.threshold = threshold
        self.timeout = timeout
        self.source_name = source_name
        self._pending: List[WriteHandle] = []
        self.drains = 0
        self.succeeded = 0
        self.failures: List[WriteFailure] = []

    @property
    def outstanding(self) -> int:
        return len(self._pending)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def timed_out(self) -> int:
        return sum(1 for f in self.failures if f.kind is WriteFailureKind.TIMEOUT)

    def add(self, handle: WriteHandle) -> None:
        self._pending.append(handle)

    async def tick(self, line_number: int) -> Optional[DrainReport]:
        """Drain when `line_number` closes a period; returns the report of that drain."""
        if line_number % self.threshold == 0:
            return await self.drain()
        return None

    async def drain(self) -> DrainReport:
        """
        Wait for every outstanding handle.

        Handles still running after `timeout` seconds are cancelled and reported
        as TIMEOUT failures; handles that raised are ERROR failures. The
        outstanding collection is empty afterwards.
        """
        handles, self._pending = self._pending, []
        report = DrainReport()
        if not handles:
            return report

        self.drains += 1
        done, not_done = await asyncio.wait(handles, timeout=self.timeout)

        for handle in not_done:
            handle.cancel()
            report.failures.append(
                WriteFailure(WriteFailureKind.TIMEOUT, f"write did not complete within {self.timeout}s")
            )
        if not_done:
            await asyncio.gather(*not_done, return_exceptions=True)

        for handle in done:
            if handle.cancelled():
                report.failures.append(WriteFailure(WriteFailureKind.ERROR, "write cancelled"))
            elif handle.exception() is not None:
                report.failures.append(WriteFailure(WriteFailureKind.ERROR, str(handle.exception())))
            else:
                report.succeeded += 1

        self.succeeded += report.succeeded
        self.failures.extend(report.failures)
        if report.failures:
            logger.warning(
                f"[Pacer] {report.failed} of {len(handles)} writes failed for {self.source_name} "
                f"({report.timed_out} timed out): {report.failures[0].message}"
            )
        return report

    async def close(self) -> DrainReport:
        """Unconditional final drain."""
        return await self.drain()
