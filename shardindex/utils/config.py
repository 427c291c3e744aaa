"""Configuration loading and manipulation helpers."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional, Sequence

import yaml

from shardindex.errors import ConfigurationError

DEFAULT_DATE_PATH_FORMAT = "%Y-%m-%d"
DEFAULT_PARALLELISM = 4

# Flat option names accepted at the top level of a config file.
OPTION_ALIASES = {
    "offHeapIndexMapDir": "off_heap.index_map_dir",
    "offHeapIndexMapNumPartitions": "off_heap.num_partitions",
    "featureNameAndTermSetInputPath": "features.name_and_term_set_path",
    "dateRange": "inputs.date_range",
    "daysAgo": "inputs.days_ago",
}
SECTION_KEYS_ALIAS = "featureShardIdToFeatureSectionKeysMap"
INTERCEPT_ALIAS = "featureShardIdToInterceptMap"


def load_config(config_path: Path) -> Mapping[str, Any]:
    """
    Parse a YAML configuration file into a nested mapping.

    The result is plain data; `IndexingConfig.from_mapping` turns it into the
    typed configuration consumed by the pipelines.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def clone_config(config: Mapping[str, Any]) -> dict[str, Any]:
    """Return a deep copy of the configuration mapping."""
    return copy.deepcopy(config)


def set_by_dotted_path(
    config: MutableMapping[str, Any],
    dotted_key: str,
    value: Any,
) -> None:
    """
    Assign a value inside a nested mapping using dotted-path syntax.

    Examples
    --------
    >>> cfg = {"off_heap": {"num_partitions": 1}}
    >>> set_by_dotted_path(cfg, "off_heap.num_partitions", 8)
    >>> cfg["off_heap"]["num_partitions"]
    8
    """
    keys: Sequence[str] = dotted_key.split(".")
    current: MutableMapping[str, Any] = config
    for key in keys[:-1]:
        if key not in current or not isinstance(current[key], MutableMapping):
            current[key] = {}
        current = current[key]  # type: ignore[assignment]
    current[keys[-1]] = value


def get_by_dotted_path(config: Mapping[str, Any], dotted_key: str, default: Any = None) -> Any:
    """Fetch a value from a nested mapping using dotted-path syntax."""
    current: Any = config
    for key in dotted_key.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return default
        current = current[key]
    return current


def normalise_aliases(config: Mapping[str, Any]) -> dict[str, Any]:
    """Rewrite flat camelCase options into their nested equivalents."""
    normalised = clone_config(config)
    for alias, dotted_key in OPTION_ALIASES.items():
        if alias in normalised:
            set_by_dotted_path(normalised, dotted_key, normalised.pop(alias))

    section_keys = normalised.pop(SECTION_KEYS_ALIAS, None)
    intercepts = normalised.pop(INTERCEPT_ALIAS, None)
    if section_keys is not None:
        if not isinstance(section_keys, Mapping):
            raise ConfigurationError(f"'{SECTION_KEYS_ALIAS}' must map shard ids to section keys")
        for shard_id, keys in section_keys.items():
            set_by_dotted_path(normalised, f"features.shards.{shard_id}.section_keys", keys)
    if intercepts is not None:
        if not isinstance(intercepts, Mapping):
            raise ConfigurationError(f"'{INTERCEPT_ALIAS}' must map shard ids to booleans")
        for shard_id, enabled in intercepts.items():
            set_by_dotted_path(normalised, f"features.shards.{shard_id}.intercept", enabled)
    return normalised


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    raise ConfigurationError(f"'{name}' must be a boolean, got {value!r}")


def _as_int(value: Any, name: str, *, minimum: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"'{name}' must be an integer, got {value!r}") from exc
    if isinstance(value, bool) or number < minimum:
        raise ConfigurationError(f"'{name}' must be an integer >= {minimum}, got {value!r}")
    return number


def _optional_str(value: Any, name: str) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    # YAML reads an unquoted 7:1 as the base-60 integer 421.
    raise ConfigurationError(f"'{name}' must be a quoted string, got {value!r}")


@dataclass(frozen=True)
class FeatureShardConfig:
    """Section keys and intercept setting of one feature shard."""

    section_keys: frozenset[str]
    # None means "not configured"; the intercept is then enabled.
    intercept: Optional[bool] = None

    @property
    def intercept_enabled(self) -> bool:
        return True if self.intercept is None else self.intercept

    @classmethod
    def from_mapping(cls, shard_id: str, raw: Any) -> "FeatureShardConfig":
        if isinstance(raw, (list, tuple, set, frozenset)):
            raw = {"section_keys": list(raw)}
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"Feature shard '{shard_id}' must be a mapping or a list of section keys")

        keys = raw.get("section_keys")
        if isinstance(keys, str):
            keys = [part.strip() for part in keys.split(",")]
        if not keys or not all(isinstance(key, str) and key for key in keys):
            raise ConfigurationError(f"Feature shard '{shard_id}' needs a non-empty list of section keys")

        intercept = raw.get("intercept")
        if intercept is not None:
            intercept = _as_bool(intercept, f"features.shards.{shard_id}.intercept")
        return cls(section_keys=frozenset(keys), intercept=intercept)


@dataclass(frozen=True)
class IndexingConfig:
    """Everything the indexing and path-resolution pipelines read."""

    shards: Mapping[str, FeatureShardConfig] = field(default_factory=dict)
    feature_name_and_term_set_path: Optional[Path] = None
    off_heap_index_map_dir: Optional[Path] = None
    off_heap_index_map_num_partitions: int = 1
    input_dirs: tuple[str, ...] = ()
    date_range: Optional[str] = None
    days_ago: Optional[str] = None
    date_path_format: str = DEFAULT_DATE_PATH_FORMAT
    parallelism: int = DEFAULT_PARALLELISM

    @property
    def uses_off_heap_index_maps(self) -> bool:
        return self.off_heap_index_map_dir is not None

    def all_section_keys(self) -> set[str]:
        keys: set[str] = set()
        for shard in self.shards.values():
            keys.update(shard.section_keys)
        return keys

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "IndexingConfig":
        cfg = normalise_aliases(config)

        raw_shards = get_by_dotted_path(cfg, "features.shards", {}) or {}
        if not isinstance(raw_shards, Mapping):
            raise ConfigurationError("'features.shards' must map shard ids to shard settings")
        shards = {
            str(shard_id): FeatureShardConfig.from_mapping(str(shard_id), raw)
            for shard_id, raw in raw_shards.items()
        }

        feature_path = _optional_str(
            get_by_dotted_path(cfg, "features.name_and_term_set_path"),
            "features.name_and_term_set_path",
        )
        off_heap_dir = _optional_str(
            get_by_dotted_path(cfg, "off_heap.index_map_dir"), "off_heap.index_map_dir"
        )

        input_dirs = get_by_dotted_path(cfg, "inputs.dirs", []) or []
        if isinstance(input_dirs, str):
            input_dirs = [input_dirs]
        if not all(isinstance(item, str) for item in input_dirs):
            raise ConfigurationError("'inputs.dirs' must be a list of directory strings")

        return cls(
            shards=shards,
            feature_name_and_term_set_path=Path(feature_path) if feature_path else None,
            off_heap_index_map_dir=Path(off_heap_dir) if off_heap_dir else None,
            off_heap_index_map_num_partitions=_as_int(
                get_by_dotted_path(cfg, "off_heap.num_partitions", 1),
                "off_heap.num_partitions",
                minimum=1,
            ),
            input_dirs=tuple(input_dirs),
            date_range=_optional_str(get_by_dotted_path(cfg, "inputs.date_range"), "inputs.date_range"),
            days_ago=_optional_str(get_by_dotted_path(cfg, "inputs.days_ago"), "inputs.days_ago"),
            date_path_format=str(
                get_by_dotted_path(cfg, "inputs.date_path_format", DEFAULT_DATE_PATH_FORMAT)
            ),
            parallelism=_as_int(
                get_by_dotted_path(cfg, "parallelism", DEFAULT_PARALLELISM),
                "parallelism",
                minimum=1,
            ),
        )
