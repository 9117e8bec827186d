import logging

import pytest

from delimload.core.models import STDIN_NAME, WorkerStatus
from delimload.exceptions import EmptyDirectoryError, SchemaError, SourceNotFoundError
from delimload.loading.dispatcher import SourceDispatcher, discover_sources, is_stdin

from .conftest import SubmitterRegistry


class TestDiscoverSources:
    @pytest.mark.parametrize("target", ["stdin", "STDIN", "-"])
    def test_stdin(self, target):
        assert is_stdin(target)
        sources = discover_sources(target)
        assert len(sources) == 1
        assert sources[0].name == STDIN_NAME
        assert sources[0].stream is not None

    def test_single_file(self, line_file_factory):
        path = line_file_factory(["1,1,1"])
        sources = discover_sources(str(path))
        assert [s.path for s in sources] == [path]
        assert sources[0].name == "data.csv"

    def test_directory_lists_regular_files_only(self, tmp_path, line_file_factory):
        line_file_factory(["1,1,1"], name="a.csv")
        line_file_factory(["2,2,2"], name="b.csv")
        (tmp_path / "nested").mkdir()
        line_file_factory(["3,3,3"], name="c.csv", directory=tmp_path / "nested")

        sources = discover_sources(tmp_path)

        assert sorted(s.name for s in sources) == ["a.csv", "b.csv"]

    def test_empty_directory(self, tmp_path):
        (tmp_path / "only_a_dir").mkdir()
        with pytest.raises(EmptyDirectoryError):
            discover_sources(tmp_path)

    def test_missing_target(self, tmp_path):
        with pytest.raises(SourceNotFoundError):
            discover_sources(tmp_path / "nope.csv")


def test_invalid_schema_fails_before_any_worker(make_config):
    config = make_config(schema_text="t(a int, a int)")
    with pytest.raises(SchemaError):
        SourceDispatcher(config)


@pytest.mark.asyncio
async def test_single_file_run(line_file_factory, make_config):
    registry = SubmitterRegistry()
    dispatcher = SourceDispatcher(make_config())

    summary = await dispatcher.run(line_file_factory(["1,1,1", "2,2,2"]), registry)

    assert summary.ok
    assert summary.total_rows == 2
    assert registry.calls == [(dispatcher.statement, 3)]


@pytest.mark.asyncio
async def test_directory_total_is_sum_of_workers(tmp_path, line_file_factory, make_config):
    sizes = {"a.csv": 3, "b.csv": 5, "c.csv": 1, "d.csv": 7}
    for name, count in sizes.items():
        line_file_factory([f"{i},{i},{i}" for i in range(count)], name=name)
    registry = SubmitterRegistry()

    summary = await SourceDispatcher(make_config(num_threads=2)).run(tmp_path, registry)

    assert summary.ok
    assert len(summary.results) == 4
    assert summary.total_rows == sum(sizes.values())
    assert summary.total_inserted == sum(sizes.values())
    assert {r.source_name: r.rows_submitted for r in summary.results} == sizes
    assert len(registry.built) == 4
    assert len(registry.rows) == sum(sizes.values())


@pytest.mark.asyncio
async def test_concurrency_is_bounded(tmp_path, line_file_factory, make_config):
    for n in range(6):
        line_file_factory([f"{n},0,0"] * 20, name=f"{n}.csv")

    active = 0
    peak = 0

    class TrackingRegistry(SubmitterRegistry):
        def __call__(self, statement, column_count):
            submitter = super().__call__(statement, column_count)
            original_prepare = submitter.prepare

            async def prepare():
                nonlocal active, peak
                active += 1
                peak = max(peak, active)
                await original_prepare()

            submitter.prepare = prepare
            return submitter

    dispatcher = SourceDispatcher(make_config(num_threads=2))
    original_run_worker = dispatcher._run_worker

    async def run_worker(*args, **kwargs):
        nonlocal active
        try:
            return await original_run_worker(*args, **kwargs)
        finally:
            active -= 1

    dispatcher._run_worker = run_worker
    summary = await dispatcher.run(tmp_path, TrackingRegistry())

    assert summary.total_rows == 120
    assert peak == 2


@pytest.mark.asyncio
async def test_aborted_source_does_not_stop_siblings(tmp_path, line_file_factory, make_config):
    line_file_factory(["x,0,0"] * 5, name="bad.csv")
    line_file_factory(["1,1,1"] * 4, name="good.csv")

    summary = await SourceDispatcher(make_config(max_errors=1, num_threads=2)).run(tmp_path, SubmitterRegistry())

    statuses = {r.source_name: r.status for r in summary.results}
    assert statuses == {"bad.csv": WorkerStatus.ABORTED, "good.csv": WorkerStatus.COMPLETED}
    assert summary.total_rows == 4
    assert not summary.ok
    assert [r.source_name for r in summary.aborted] == ["bad.csv"]


@pytest.mark.asyncio
async def test_run_scope_abort_cancels_pending_sources(tmp_path, line_file_factory, make_config):
    line_file_factory(["x,0,0"] * 5, name="a_bad.csv")
    for n in range(3):
        line_file_factory(["1,1,1"] * 4, name=f"good_{n}.csv")
    config = make_config(max_errors=0, num_threads=1, abort_scope="run")
    dispatcher = SourceDispatcher(config)
    sources = sorted(discover_sources(tmp_path), key=lambda s: s.name)

    summary = await dispatcher.run_sources(sources, SubmitterRegistry())

    statuses = [r.status for r in summary.results]
    assert statuses == [WorkerStatus.ABORTED] + [WorkerStatus.CANCELLED] * 3
    assert summary.total_rows == 0


@pytest.mark.asyncio
async def test_unexpected_worker_error_becomes_failed_result(tmp_path, line_file_factory, make_config):
    line_file_factory(["1,1,1"], name="a.csv")
    line_file_factory(["2,2,2"], name="b.csv")

    def exploding_parser_factory(schema, config):
        raise RuntimeError("parser exploded")

    dispatcher = SourceDispatcher(make_config(), parser_factory=exploding_parser_factory)
    summary = await dispatcher.run(tmp_path, SubmitterRegistry())

    assert [r.status for r in summary.results] == [WorkerStatus.FAILED, WorkerStatus.FAILED]
    assert all("parser exploded" in r.error for r in summary.results)
    assert len(summary.failed) == 2


@pytest.mark.asyncio
async def test_partial_counts_of_aborted_workers_are_included(tmp_path, line_file_factory, make_config):
    line_file_factory(["1,1,1", "2,2,2", "x,0,0", "x,0,0"], name="a.csv")
    line_file_factory(["3,3,3"], name="b.csv")

    summary = await SourceDispatcher(make_config(max_errors=1)).run(tmp_path, SubmitterRegistry())

    assert summary.total_rows == 3


@pytest.mark.asyncio
async def test_unexpected_error_on_single_source_becomes_failed_result(line_file_factory, make_config):
    def exploding_parser_factory(schema, config):
        raise RuntimeError("parser exploded")

    dispatcher = SourceDispatcher(make_config(), parser_factory=exploding_parser_factory)
    summary = await dispatcher.run(line_file_factory(["1,1,1"]), SubmitterRegistry())

    assert len(summary.results) == 1
    assert summary.results[0].status is WorkerStatus.FAILED
    assert summary.results[0].error == "parser exploded"
    assert not summary.ok


@pytest.mark.asyncio
async def test_single_source_prepare_crash_becomes_failed_result(line_file_factory, make_config):
    registry = SubmitterRegistry(prepare_error=RuntimeError("pool closed"))

    summary = await SourceDispatcher(make_config()).run(line_file_factory(["1,1,1"]), registry)

    assert [r.status for r in summary.results] == [WorkerStatus.FAILED]
    assert summary.failed == summary.results


@pytest.mark.asyncio
async def test_run_scope_abort_stops_running_sibling(tmp_path, line_file_factory, make_config):
    line_file_factory([f"{i},{i},{i}" for i in range(5000)], name="a_good.csv")
    line_file_factory(["x,0,0"], name="b_bad.csv")
    config = make_config(max_errors=0, num_threads=2, abort_scope="run")
    sources = sorted(discover_sources(tmp_path), key=lambda s: s.name)

    summary = await SourceDispatcher(config).run_sources(sources, SubmitterRegistry())

    good, bad = summary.results
    assert bad.status is WorkerStatus.ABORTED
    assert good.status is WorkerStatus.CANCELLED
    assert 0 < good.lines_read < 5000
    assert summary.total_rows == good.rows_submitted


@pytest.mark.asyncio
async def test_run_logs_total_rows_inserted(caplog, tmp_path, line_file_factory, make_config):
    caplog.set_level(logging.INFO)
    line_file_factory(["1,1,1", "2,2,2"], name="a.csv")
    line_file_factory(["3,3,3", "oops", "4,4,4"], name="b.csv")

    await SourceDispatcher(make_config()).run(tmp_path, SubmitterRegistry())

    assert "Total rows inserted: 4" in [r.getMessage() for r in caplog.records]
