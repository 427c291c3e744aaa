from datetime import date
from pathlib import Path

import pytest

from shardindex.errors import ConfigurationError
from shardindex.pipelines.date_paths import (
    input_paths_within_date_range,
    paths_for_date_range,
)
from shardindex.utils.dates import DateRange


class RecordingFileSystem:
    """In-memory filesystem that reports a fixed set of existing paths."""

    def __init__(self, existing):
        self.existing = set(existing)
        self.checked = []

    def exists(self, path: str) -> bool:
        self.checked.append(path)
        return path in self.existing

    def list_files(self, path: str) -> list[str]:
        return []


ALL_PATHS = [
    "/data/a/2020-01-01",
    "/data/a/2020-01-02",
    "/data/a/2020-01-03",
    "/data/b/2020-01-01",
    "/data/b/2020-01-02",
    "/data/b/2020-01-03",
]


def test_missing_dates_are_dropped_in_directory_major_order():
    fs = RecordingFileSystem(set(ALL_PATHS) - {"/data/a/2020-01-02"})

    paths = paths_for_date_range(
        ["/data/a", "/data/b"], "2020-01-01:2020-01-03", None, fs=fs, parallelism=3
    )

    assert paths == [path for path in ALL_PATHS if path != "/data/a/2020-01-02"]
    assert sorted(fs.checked) == sorted(ALL_PATHS)


def test_both_specs_are_ambiguous():
    with pytest.raises(ConfigurationError):
        paths_for_date_range(["/data/a"], "2020-01-01:2020-01-03", "7:1", fs=RecordingFileSystem([]))


def test_no_specs_returns_base_dirs_unchanged():
    fs = RecordingFileSystem([])

    assert paths_for_date_range(["/data/b", "/data/a"], None, None, fs=fs) == ["/data/b", "/data/a"]
    assert fs.checked == []


def test_days_ago_resolves_relative_to_today():
    fs = RecordingFileSystem(ALL_PATHS)

    paths = paths_for_date_range(["/data/b"], None, "2:1", fs=fs, today=date(2020, 1, 3))

    assert paths == ["/data/b/2020-01-01", "/data/b/2020-01-02"]


def test_inverted_or_unparsable_ranges_fail():
    fs = RecordingFileSystem(ALL_PATHS)

    with pytest.raises(ConfigurationError):
        paths_for_date_range(["/data/a"], "2020-01-03:2020-01-01", None, fs=fs)
    with pytest.raises(ConfigurationError):
        paths_for_date_range(["/data/a"], None, "1:7", fs=fs)
    with pytest.raises(ConfigurationError):
        paths_for_date_range(["/data/a"], "last-week", None, fs=fs)


def test_nothing_found_is_not_an_error():
    paths = paths_for_date_range(["/data/a"], "20200101:20200103", None, fs=RecordingFileSystem([]))

    assert paths == []


def test_custom_layout_on_local_disk(tmp_path: Path):
    for day in ("01", "03"):
        (tmp_path / "daily" / "2020" / "01" / day).mkdir(parents=True)

    paths = input_paths_within_date_range(
        [str(tmp_path) + "/"],
        DateRange(date(2020, 1, 1), date(2020, 1, 3)),
        date_path_format="daily/%Y/%m/%d",
    )

    assert paths == [
        f"{tmp_path}/daily/2020/01/01",
        f"{tmp_path}/daily/2020/01/03",
    ]
