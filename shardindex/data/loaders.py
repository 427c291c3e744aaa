"""
Readers for the raw name-and-term feature listings.

Each feature section (e.g. `userFeatures`) is stored as tab-separated
`name<TAB>term` lines, either as a directory of part files under
`<root>/<section_key>/` or as a single `<root>/<section_key>.tsv` file.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional

import pandas as pd
from loguru import logger

from shardindex.errors import ConfigurationError, FeatureSourceError
from shardindex.utils.filesystem import FileSystem, LocalFileSystem

SECTION_FILE_SUFFIX = ".tsv"


@dataclass(frozen=True, order=True)
class NameAndTerm:
    """A single raw feature identifier."""

    name: str
    term: str


@dataclass(frozen=True)
class FeatureSetContainer:
    """De-duplicated name-and-term sets keyed by feature section."""

    sections: Mapping[str, frozenset[NameAndTerm]]

    def section_keys(self) -> list[str]:
        return sorted(self.sections)

    def features_for_sections(self, section_keys: Iterable[str]) -> set[NameAndTerm]:
        """
        Union the feature sets of the requested sections.

        Raises
        ------
        ConfigurationError
            If any requested section was not loaded.
        """
        requested = sorted(set(section_keys))
        missing = [key for key in requested if key not in self.sections]
        if missing:
            raise ConfigurationError(
                f"Feature section(s) {missing} were requested but not loaded; "
                f"available sections: {self.section_keys()}"
            )
        merged: set[NameAndTerm] = set()
        for key in requested:
            merged.update(self.sections[key])
        return merged


def _section_source(root: Path, section_key: str, fs: FileSystem) -> Optional[str]:
    directory = root / section_key
    if fs.exists(str(directory)):
        return str(directory)
    single_file = root / f"{section_key}{SECTION_FILE_SUFFIX}"
    if fs.exists(str(single_file)):
        return str(single_file)
    return None


def _read_name_and_term_file(path: str, section_key: str) -> pd.DataFrame:
    # Split lines explicitly: read_csv turns an extra leading field into an
    # implicit index and would silently drop it.
    try:
        with open(path, "r", encoding="utf-8") as handle:
            lines = pd.Series(handle.read().splitlines(), dtype=object)
    except (OSError, UnicodeDecodeError) as exc:
        raise FeatureSourceError(
            f"Unable to read feature listing {path}: {exc}", section_key=section_key
        ) from exc

    lines = lines[lines != ""]
    if lines.empty:
        return pd.DataFrame(columns=["name", "term"])

    fields = lines.str.split("\t", expand=True)
    field_counts = fields.notna().sum(axis=1)
    malformed = field_counts[field_counts > 2]
    if not malformed.empty:
        line_number = int(malformed.index[0]) + 1
        raise FeatureSourceError(
            f"Malformed feature listing {path}: line {line_number} has "
            f"{int(malformed.iloc[0])} tab-separated fields, expected 'name<TAB>term'",
            section_key=section_key,
        )

    if fields.shape[1] == 1:
        fields[1] = ""
    fields.columns = ["name", "term"]
    return fields.fillna("").reset_index(drop=True)


def read_section(root: Path, section_key: str, *, fs: FileSystem | None = None) -> frozenset[NameAndTerm]:
    """Read and de-duplicate every name-and-term pair of one section."""
    fs = fs or LocalFileSystem()
    source = _section_source(root, section_key, fs)
    if source is None:
        raise ConfigurationError(
            f"Feature section '{section_key}' not found under {root}"
        )

    try:
        files = fs.list_files(source)
    except OSError as exc:
        raise FeatureSourceError(
            f"Unable to list feature section '{section_key}' at {source}: {exc}",
            section_key=section_key,
        ) from exc

    frames = [_read_name_and_term_file(path, section_key) for path in files]
    if not frames:
        return frozenset()
    combined = pd.concat(frames, ignore_index=True).drop_duplicates()
    return frozenset(
        NameAndTerm(str(name), str(term))
        for name, term in combined.itertuples(index=False, name=None)
    )


def load_feature_sets(
    root: Path,
    section_keys: Iterable[str],
    *,
    fs: FileSystem | None = None,
) -> FeatureSetContainer:
    """
    Load the name-and-term sets of the given sections.

    Parameters
    ----------
    root:
        Directory holding one listing per feature section.
    section_keys:
        Sections to read; every one must exist under `root`.
    """
    sections: dict[str, frozenset[NameAndTerm]] = {}
    for section_key in sorted(set(section_keys)):
        sections[section_key] = read_section(root, section_key, fs=fs)
        logger.info(
            "Loaded {} distinct features for section '{}'",
            len(sections[section_key]),
            section_key,
        )
    return FeatureSetContainer(sections=sections)
