"""
File system helpers shared by logging setup and source discovery.
"""
from os import remove, scandir, path
from pathlib import Path
from shutil import rmtree
from typing import List


def clear_latest_items(dir_path: str, n_to_keep: int) -> None:
    """
    Remove the oldest entries of `dir_path`, keeping the `n_to_keep` most recent ones.

    Entries are ordered by modification time. Files and symlinks are unlinked,
    directories are removed recursively.

    Raises:
        FileNotFoundError: If `dir_path` does not exist.
        OSError: If the directory cannot be scanned.
    """
    if not path.exists(dir_path):
        raise FileNotFoundError(f"Path not found: {dir_path}")

    try:
        all_items = sorted(scandir(dir_path), key=lambda entry: entry.stat().st_mtime)
    except OSError as e:
        raise OSError(f"Error scanning directory {dir_path}: {e}") from e

    num_items_to_delete = len(all_items) - n_to_keep
    for item in all_items[:max(num_items_to_delete, 0)]:
        if item.is_file() or item.is_symlink():
            remove(item.path)
        elif item.is_dir():
            rmtree(item.path)


def list_regular_files(directory: Path) -> List[Path]:
    """Immediate regular files of `directory`, in whatever order the OS returns them."""
    return [entry for entry in directory.iterdir() if entry.is_file()]
