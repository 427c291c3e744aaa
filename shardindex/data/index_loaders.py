"""
Two-phase index map handles.

A loader is the lightweight value handed to every process that needs a
shard's index map; `realize()` produces the map inside that process. The
in-memory loader carries its map as data. The off-heap loader carries only the
store coordinates and opens the memory-mapped partitions locally on first use.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from .indexers import DefaultIndexMap, IndexMap
from .offheap import OffHeapIndexMap


class IndexMapLoader(ABC):
    """Factory for a shard's `IndexMap`."""

    @abstractmethod
    def realize(self) -> IndexMap:
        ...

    def close(self) -> None:
        """Release whatever `realize` acquired; a later `realize` starts over."""


class DefaultIndexMapLoader(IndexMapLoader):
    """Wraps an already built in-memory map; pickles as plain data."""

    def __init__(self, index_map: DefaultIndexMap) -> None:
        self._index_map = index_map

    def realize(self) -> DefaultIndexMap:
        return self._index_map

    def __repr__(self) -> str:
        return f"DefaultIndexMapLoader(size={self._index_map.size()})"


class OffHeapIndexMapLoader(IndexMapLoader):
    """Opens an `OffHeapIndexMap` lazily, at most once per process."""

    def __init__(self, directory: Path, num_partitions: int, shard_id: str) -> None:
        self.directory = Path(directory)
        self.num_partitions = num_partitions
        self.shard_id = shard_id
        self._lock = threading.Lock()
        self._index_map: Optional[OffHeapIndexMap] = None

    def realize(self) -> OffHeapIndexMap:
        index_map = self._index_map
        if index_map is None:
            with self._lock:
                if self._index_map is None:
                    self._index_map = OffHeapIndexMap.open(
                        self.directory, self.num_partitions, self.shard_id
                    )
                index_map = self._index_map
        return index_map

    @property
    def is_open(self) -> bool:
        return self._index_map is not None

    def close(self) -> None:
        with self._lock:
            if self._index_map is not None:
                self._index_map.close()
                self._index_map = None

    def __enter__(self) -> "OffHeapIndexMapLoader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __getstate__(self) -> dict[str, Any]:
        # Only the store coordinates travel; memory maps are reopened remotely.
        return {
            "directory": self.directory,
            "num_partitions": self.num_partitions,
            "shard_id": self.shard_id,
        }

    def __setstate__(self, state: dict[str, Any]) -> None:
        self.__init__(state["directory"], state["num_partitions"], state["shard_id"])

    def __repr__(self) -> str:
        return (
            f"OffHeapIndexMapLoader(directory={str(self.directory)!r}, "
            f"num_partitions={self.num_partitions}, shard_id={self.shard_id!r})"
        )
