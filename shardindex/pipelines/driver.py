"""Driver-facing entry point bundling configuration and filesystem access."""

from __future__ import annotations

from datetime import date
from typing import Mapping, Optional, Sequence

from shardindex.data.index_loaders import IndexMapLoader
from shardindex.utils.config import IndexingConfig
from shardindex.utils.filesystem import FileSystem, LocalFileSystem

from .date_paths import paths_for_date_range
from .feature_maps import prepare_feature_maps


class FeatureIndexDriver:
    """
    Shared setup for training and scoring drivers.

    Parameters
    ----------
    config:
        Parsed indexing configuration.
    fs:
        Filesystem used for feature listings and input path checks.
    """

    def __init__(self, config: IndexingConfig, *, fs: Optional[FileSystem] = None) -> None:
        self.config = config
        self.fs = fs or LocalFileSystem()

    def prepare_feature_maps(self) -> Mapping[str, IndexMapLoader]:
        return prepare_feature_maps(self.config, fs=self.fs)

    def paths_for_date_range(
        self,
        base_dirs: Optional[Sequence[str]] = None,
        *,
        today: Optional[date] = None,
    ) -> list[str]:
        """Resolve `base_dirs` (default: the configured input dirs) for the configured window."""
        return paths_for_date_range(
            list(self.config.input_dirs if base_dirs is None else base_dirs),
            self.config.date_range,
            self.config.days_ago,
            fs=self.fs,
            today=today,
            date_path_format=self.config.date_path_format,
            parallelism=self.config.parallelism,
        )
