"""
Resolve logical date windows to the input directories that exist on disk.

Days without data are expected (upstream jobs skip days), so missing
directories are dropped instead of failing the run.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Optional, Sequence

from loguru import logger

from shardindex.errors import ConfigurationError
from shardindex.utils.config import DEFAULT_DATE_PATH_FORMAT, DEFAULT_PARALLELISM
from shardindex.utils.dates import DateRange
from shardindex.utils.filesystem import FileSystem, LocalFileSystem


def _join(base_dir: str, relative: str) -> str:
    # Plain string join keeps URI schemes such as hdfs:// intact.
    return base_dir.rstrip("/") + "/" + relative.lstrip("/")


def input_paths_within_date_range(
    base_dirs: Sequence[str],
    date_range: DateRange,
    *,
    fs: Optional[FileSystem] = None,
    date_path_format: str = DEFAULT_DATE_PATH_FORMAT,
    parallelism: int = DEFAULT_PARALLELISM,
) -> list[str]:
    """
    List `base_dir/<date>` paths that exist, directory-major then by date.

    Existence checks run concurrently; the output order only depends on
    `base_dirs` and the range.
    """
    fs = fs or LocalFileSystem()
    days = date_range.dates()
    candidates = [
        _join(base_dir, day.strftime(date_path_format)) for base_dir in base_dirs for day in days
    ]

    with ThreadPoolExecutor(max_workers=max(parallelism, 1)) as executor:
        found = list(executor.map(fs.exists, candidates))

    resolved = [path for path, exists in zip(candidates, found) if exists]
    missing = len(candidates) - len(resolved)
    if missing:
        logger.debug(
            "Skipped {} of {} dated input paths that do not exist for {}",
            missing,
            len(candidates),
            date_range,
        )
    if candidates and not resolved:
        logger.warning("No input paths exist under {} for {}", list(base_dirs), date_range)
    return resolved


def paths_for_date_range(
    base_dirs: Sequence[str],
    date_range_spec: Optional[str],
    days_ago_spec: Optional[str],
    *,
    fs: Optional[FileSystem] = None,
    today: Optional[date] = None,
    date_path_format: str = DEFAULT_DATE_PATH_FORMAT,
    parallelism: int = DEFAULT_PARALLELISM,
) -> list[str]:
    """
    Resolve the physical input paths for an optional date window.

    Parameters
    ----------
    base_dirs:
        Directories the dated relative paths are appended to.
    date_range_spec:
        Explicit range such as `"20200101:20200131"`.
    days_ago_spec:
        Relative range such as `"90:1"`. Mutually exclusive with
        `date_range_spec`; when neither is given `base_dirs` is returned as-is.
    """
    if date_range_spec is not None and days_ago_spec is not None:
        raise ConfigurationError(
            "Both date range and days ago given. You must specify date ranges using only one format."
        )

    if date_range_spec is not None:
        date_range = DateRange.from_dates(date_range_spec)
    elif days_ago_spec is not None:
        date_range = DateRange.from_days_ago(days_ago_spec, today=today)
    else:
        return list(base_dirs)

    return input_paths_within_date_range(
        base_dirs,
        date_range,
        fs=fs,
        date_path_format=date_path_format,
        parallelism=parallelism,
    )
