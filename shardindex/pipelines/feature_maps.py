"""
Per-shard feature index map preparation.

`prepare_feature_maps` is the single switch between backends: every shard of a
run gets an in-memory map, or every shard gets an off-heap map. Mixing the two
would give shards index spaces built under different conventions.
"""

from __future__ import annotations

from typing import Mapping, Optional

from loguru import logger

from shardindex.data.feature_keys import get_feature_key
from shardindex.data.index_loaders import (
    DefaultIndexMapLoader,
    IndexMapLoader,
    OffHeapIndexMapLoader,
)
from shardindex.data.indexers import build_index_map
from shardindex.data.loaders import FeatureSetContainer, load_feature_sets
from shardindex.errors import ConfigurationError, FeatureSourceError
from shardindex.utils.config import IndexingConfig
from shardindex.utils.filesystem import FileSystem


def _require_shards(config: IndexingConfig) -> None:
    if not config.shards:
        raise ConfigurationError("No feature shards configured")


def prepare_feature_maps_default(
    config: IndexingConfig,
    *,
    feature_sets: Optional[FeatureSetContainer] = None,
    fs: Optional[FileSystem] = None,
) -> dict[str, IndexMapLoader]:
    """
    Build an in-memory index map for every shard.

    Parameters
    ----------
    config:
        Shard definitions and the location of the name-and-term listings.
    feature_sets:
        Already loaded listings; read from
        `config.feature_name_and_term_set_path` when omitted.
    """
    _require_shards(config)
    if feature_sets is None:
        if config.feature_name_and_term_set_path is None:
            raise ConfigurationError(
                "features.name_and_term_set_path is required to build in-memory index maps"
            )
        try:
            feature_sets = load_feature_sets(
                config.feature_name_and_term_set_path, config.all_section_keys(), fs=fs
            )
        except FeatureSourceError as exc:
            shard_ids = sorted(
                shard_id
                for shard_id, shard in config.shards.items()
                if exc.section_key in shard.section_keys
            )
            raise FeatureSourceError(
                f"{exc} (needed by feature shard(s) {shard_ids})",
                section_key=exc.section_key,
            ) from exc

    loaders: dict[str, IndexMapLoader] = {}
    for shard_id, shard in sorted(config.shards.items()):
        if shard.intercept is None:
            logger.warning(
                "Feature shard '{}' does not set 'intercept'; defaulting to an intercept term",
                shard_id,
            )
        features = feature_sets.features_for_sections(shard.section_keys)
        index_map = build_index_map(
            (get_feature_key(feature.name, feature.term) for feature in features),
            add_intercept=shard.intercept_enabled,
        )
        loaders[shard_id] = DefaultIndexMapLoader(index_map)
        logger.debug("Feature shard ID: {}, number of features: {}", shard_id, index_map.size())
    return loaders


def prepare_feature_maps_off_heap(config: IndexingConfig) -> dict[str, IndexMapLoader]:
    """Create an unopened off-heap loader for every shard."""
    _require_shards(config)
    if config.off_heap_index_map_dir is None:
        raise ConfigurationError("off_heap.index_map_dir is required for off-heap index maps")
    return {
        shard_id: OffHeapIndexMapLoader(
            config.off_heap_index_map_dir,
            config.off_heap_index_map_num_partitions,
            shard_id,
        )
        for shard_id in sorted(config.shards)
    }


def prepare_feature_maps(
    config: IndexingConfig,
    *,
    feature_sets: Optional[FeatureSetContainer] = None,
    fs: Optional[FileSystem] = None,
) -> Mapping[str, IndexMapLoader]:
    """Return one index map loader per feature shard using a single backend."""
    if config.uses_off_heap_index_maps:
        logger.info(
            "Using off-heap index maps from {} ({} partitions) for {} shard(s)",
            config.off_heap_index_map_dir,
            config.off_heap_index_map_num_partitions,
            len(config.shards),
        )
        return prepare_feature_maps_off_heap(config)

    logger.info("Building in-memory index maps for {} shard(s)", len(config.shards))
    return prepare_feature_maps_default(config, feature_sets=feature_sets, fs=fs)
