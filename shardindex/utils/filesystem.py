"""Minimal filesystem seam used for existence checks and text listings."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, Protocol


class FileSystem(Protocol):
    """Operations the indexing code needs from a storage backend."""

    def exists(self, path: str) -> bool:
        ...

    def list_files(self, path: str) -> list[str]:
        ...


class LocalFileSystem:
    """`FileSystem` backed by the local disk."""

    def exists(self, path: str) -> bool:
        return Path(path).exists()

    def list_files(self, path: str) -> list[str]:
        """
        Return the data files under `path` in sorted order.

        A plain file is returned as-is; hidden and marker files such as
        `_SUCCESS` are skipped when listing a directory.
        """
        target = Path(path)
        if target.is_file():
            return [str(target)]
        if not target.is_dir():
            raise FileNotFoundError(f"No such file or directory: {target}")
        return [str(child) for child in _iter_data_files(target)]


def _iter_data_files(directory: Path) -> Iterator[Path]:
    for child in sorted(directory.iterdir()):
        if child.name.startswith(("_", ".")) or not child.is_file():
            continue
        yield child
