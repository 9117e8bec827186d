"""
Shared fixtures: temporary source files and an in-memory stand-in for the
database side of a worker.
"""
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest

from delimload.core.schema import parse_schema
from delimload.setup.config import IngestionConfig

SCHEMA = "test.test3(a int, b int, c int)"


class FakeSubmitter:
    """
    Records submitted rows instead of writing them.

    `fail_on` holds values of the first column whose write should raise;
    `hang_on` holds values whose write never completes on its own.
    """

    def __init__(self, fail_on=(), hang_on=(), prepare_error: Optional[Exception] = None):
        self.fail_on = set(fail_on)
        self.hang_on = set(hang_on)
        self.prepare_error = prepare_error
        self.rows: List[tuple] = []
        self.prepared = False

    async def prepare(self) -> None:
        if self.prepare_error is not None:
            raise self.prepare_error
        self.prepared = True

    def submit(self, values: Sequence[Any]) -> asyncio.Future:
        return asyncio.ensure_future(self._write(tuple(values)))

    async def _write(self, values: tuple) -> None:
        await asyncio.sleep(0)
        key = values[0] if values else None
        if key in self.hang_on:
            await asyncio.sleep(3600)
        if key in self.fail_on:
            raise RuntimeError(f"duplicate key value: {key}")
        self.rows.append(values)


class SubmitterRegistry:
    """Submitter factory for the dispatcher that remembers every submitter it built."""

    def __init__(self, **submitter_kwargs):
        self.submitter_kwargs = submitter_kwargs
        self.built: List[FakeSubmitter] = []
        self.calls: List[tuple] = []

    def __call__(self, statement: str, column_count: int) -> FakeSubmitter:
        self.calls.append((statement, column_count))
        submitter = FakeSubmitter(**self.submitter_kwargs)
        self.built.append(submitter)
        return submitter

    @property
    def rows(self) -> List[tuple]:
        return [row for submitter in self.built for row in submitter.rows]


@pytest.fixture
def schema():
    return parse_schema(SCHEMA)


@pytest.fixture
def make_config():
    def _make(**overrides) -> IngestionConfig:
        values: Dict[str, Any] = {"schema_text": SCHEMA}
        values.update(overrides)
        return IngestionConfig(**values)
    return _make


@pytest.fixture
def line_file_factory(tmp_path):
    """Writes the given lines, newline-terminated, to a file under tmp_path."""
    def _create(lines: List[str], name: str = "data.csv", directory: Optional[Path] = None) -> Path:
        target_dir = directory or tmp_path
        target_dir.mkdir(parents=True, exist_ok=True)
        file_path = target_dir / name
        file_path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
        return file_path
    return _create
