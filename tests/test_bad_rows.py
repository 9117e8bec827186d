import pytest

from delimload.loading.bad_rows import BadRowSink


def test_disabled_without_directory():
    sink = BadRowSink(None, "data.csv")
    with sink:
        sink.write("1,x,3")
    assert not sink.enabled
    assert sink.path is None
    assert sink.count == 0


def test_writes_raw_lines(tmp_path):
    with BadRowSink(tmp_path, "data.csv") as sink:
        sink.write("1,x,3")
        sink.write("a,b")

    assert sink.path == tmp_path / "data.csv.BAD"
    assert sink.count == 2
    assert sink.path.read_text(encoding="utf-8") == "1,x,3\na,b\n"


def test_opening_truncates_previous_file(tmp_path):
    (tmp_path / "data.csv.BAD").write_text("stale\n", encoding="utf-8")
    with BadRowSink(tmp_path, "data.csv") as sink:
        sink.write("fresh")
    assert sink.path.read_text(encoding="utf-8") == "fresh\n"


def test_open_fails_for_missing_directory(tmp_path):
    sink = BadRowSink(tmp_path / "missing", "data.csv")
    with pytest.raises(OSError):
        sink.open()
