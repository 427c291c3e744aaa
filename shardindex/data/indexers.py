"""
Index maps that assign dense integer positions to feature keys.

Two representations share the `IndexMap` contract: `DefaultIndexMap`, a plain
in-memory dictionary that is cheap to ship between processes, and the
memory-mapped `OffHeapIndexMap` in `shardindex.data.offheap`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Mapping, Optional

from .feature_keys import INTERCEPT_KEY, get_feature_key

NULL_INDEX = -1


class IndexMap(ABC):
    """Read-only mapping from feature key to index."""

    @abstractmethod
    def get(self, key: str) -> Optional[int]:
        """Return the index of `key`, or None when the key is unknown."""

    @abstractmethod
    def get_feature_name(self, index: int) -> Optional[str]:
        """Return the feature key stored at `index`, or None when out of range."""

    @abstractmethod
    def size(self) -> int:
        ...

    def get_index(self, key: str) -> int:
        index = self.get(key)
        return NULL_INDEX if index is None else index

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    @property
    def has_intercept(self) -> bool:
        return INTERCEPT_KEY in self


@dataclass(frozen=True)
class DefaultIndexMap(IndexMap):
    """In-memory index map backed by a dictionary and its inverse list."""

    key_to_index: Mapping[str, int]
    index_to_key: list[str] = field(repr=False)

    def get(self, key: str) -> Optional[int]:
        return self.key_to_index.get(key)

    def get_feature_name(self, index: int) -> Optional[str]:
        if 0 <= index < len(self.index_to_key):
            return self.index_to_key[index]
        return None

    def size(self) -> int:
        return len(self.index_to_key)

    def items(self) -> Iterator[tuple[str, int]]:
        """Yield (key, index) pairs in index order."""
        return ((key, idx) for idx, key in enumerate(self.index_to_key))


def build_index_map(keys: Iterable[str], *, add_intercept: bool = False) -> DefaultIndexMap:
    """
    Assign indices 0..N-1 to the distinct keys in ascending key order.

    Sorting makes the assignment a function of the key set alone, so rebuilding
    from the same features always yields the same indices.

    Parameters
    ----------
    keys:
        Feature keys, duplicates allowed.
    add_intercept:
        Include the synthetic intercept key.
    """
    distinct = set(keys)
    if add_intercept:
        distinct.add(INTERCEPT_KEY)

    index_to_key = sorted(distinct)
    key_to_index = {key: idx for idx, key in enumerate(index_to_key)}
    return DefaultIndexMap(key_to_index=key_to_index, index_to_key=index_to_key)


def build_name_and_term_index_map(
    features: Iterable[tuple[str, str]], *, add_intercept: bool = False
) -> DefaultIndexMap:
    """Encode (name, term) pairs and build a `DefaultIndexMap` from them."""
    return build_index_map(
        (get_feature_key(name, term) for name, term in features),
        add_intercept=add_intercept,
    )
