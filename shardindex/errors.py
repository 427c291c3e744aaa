"""Exception hierarchy shared by the indexing and path-resolution code."""

from __future__ import annotations

from typing import Optional


class ShardIndexError(Exception):
    """Base class for every failure raised by this package."""


class ConfigurationError(ShardIndexError, ValueError):
    """Invalid, ambiguous or contradictory configuration."""


class FeatureSourceError(ShardIndexError, OSError):
    """The raw feature name-and-term listing could not be read."""

    def __init__(self, message: str, *, section_key: Optional[str] = None) -> None:
        super().__init__(message)
        self.section_key = section_key


class StoreNotFoundError(ShardIndexError, FileNotFoundError):
    """A partition file of an off-heap index map store is missing."""


class CorruptStoreError(ShardIndexError):
    """An off-heap index map partition exists but cannot be decoded."""
