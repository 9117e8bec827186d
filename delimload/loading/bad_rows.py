"""
Per-source sink for lines that failed to parse.
"""
from pathlib import Path
from typing import Optional, TextIO

BAD_SUFFIX = ".BAD"


class BadRowSink:
    """Appends raw failed lines to `<bad_dir>/<source>.BAD`; a no-op without a directory."""

    def __init__(self, bad_dir: Optional[Path], source_name: str):
        self.path = Path(bad_dir) / f"{source_name}{BAD_SUFFIX}" if bad_dir is not None else None
        self.count = 0
        self._file: Optional[TextIO] = None

    @property
    def enabled(self) -> bool:
        return self.path is not None

    def open(self) -> "BadRowSink":
        """Raises OSError when the file cannot be created."""
        if self.enabled and self._file is None:
            self._file = open(self.path, "w", encoding="utf-8", newline="\n")
        return self

    def write(self, line: str) -> None:
        if self._file is None:
            return
        self._file.write(line)
        self._file.write("\n")
        self.count += 1

    def close(self) -> None:
        if self._file is not None:
            self._file.flush()
            self._file.close()
            self._file = None

    def __enter__(self) -> "BadRowSink":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
