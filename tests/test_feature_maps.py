from pathlib import Path

import pytest

from shardindex.data.feature_keys import INTERCEPT_KEY, get_feature_key
from shardindex.data.index_loaders import DefaultIndexMapLoader, OffHeapIndexMapLoader
from shardindex.data.loaders import load_feature_sets
from shardindex.data.offheap import write_off_heap_store
from shardindex.errors import ConfigurationError, FeatureSourceError, StoreNotFoundError
from shardindex.pipelines import feature_maps
from shardindex.pipelines.feature_maps import (
    prepare_feature_maps,
    prepare_feature_maps_default,
)
from shardindex.utils.config import IndexingConfig


def _config(feature_root: Path, **overrides) -> IndexingConfig:
    raw = {
        "features": {
            "name_and_term_set_path": str(feature_root),
            "shards": {
                "global": {"section_keys": ["userFeatures", "itemFeatures"]},
                "per_user": {"section_keys": ["userFeatures"], "intercept": False},
            },
        }
    }
    raw.update(overrides)
    return IndexingConfig.from_mapping(raw)


def test_default_maps_cover_each_shard_sections(feature_root: Path):
    loaders = prepare_feature_maps(_config(feature_root))

    assert set(loaders) == {"global", "per_user"}
    assert all(isinstance(loader, DefaultIndexMapLoader) for loader in loaders.values())

    global_map = loaders["global"].realize()
    per_user_map = loaders["per_user"].realize()
    assert global_map.size() == 6  # five distinct features plus the intercept
    assert per_user_map.size() == 3
    assert get_feature_key("genre", "jazz") in global_map
    assert get_feature_key("genre", "jazz") not in per_user_map


def test_intercept_defaults_on_and_can_be_disabled(feature_root: Path):
    loaders = prepare_feature_maps(_config(feature_root))

    assert loaders["global"].realize().index_to_key.count(INTERCEPT_KEY) == 1
    assert INTERCEPT_KEY not in loaders["per_user"].realize()


def test_rebuild_yields_identical_assignment(feature_root: Path):
    first = prepare_feature_maps(_config(feature_root))
    second = prepare_feature_maps(_config(feature_root))

    for shard_id in first:
        assert dict(first[shard_id].realize().key_to_index) == dict(
            second[shard_id].realize().key_to_index
        )


def test_unknown_section_key_fails(feature_root: Path):
    config = IndexingConfig.from_mapping(
        {
            "features": {
                "name_and_term_set_path": str(feature_root),
                "shards": {"global": ["userFeatures", "missingFeatures"]},
            }
        }
    )

    with pytest.raises(ConfigurationError):
        prepare_feature_maps(config)


def test_missing_feature_path_or_shards_fail(feature_root: Path):
    with pytest.raises(ConfigurationError):
        prepare_feature_maps(IndexingConfig.from_mapping({"features": {"shards": {"g": ["a"]}}}))
    with pytest.raises(ConfigurationError):
        prepare_feature_maps(IndexingConfig())


def test_off_heap_dir_switches_every_shard(feature_root: Path, tmp_path: Path, monkeypatch):
    store = tmp_path / "store"
    write_off_heap_store(["a", "b"], store, 2, "global")
    write_off_heap_store(["c"], store, 2, "per_user")

    def fail(*args, **kwargs):
        raise AssertionError("in-memory builder must not run in off-heap mode")

    monkeypatch.setattr(feature_maps, "prepare_feature_maps_default", fail)
    monkeypatch.setattr(feature_maps, "load_feature_sets", fail)

    config = _config(feature_root, off_heap={"index_map_dir": str(store), "num_partitions": 2})
    loaders = prepare_feature_maps(config)

    assert all(isinstance(loader, OffHeapIndexMapLoader) for loader in loaders.values())
    assert loaders["global"].realize().size() == 2
    assert loaders["per_user"].realize().size() == 1


def test_off_heap_mode_never_falls_back(feature_root: Path, tmp_path: Path):
    store = tmp_path / "store"
    write_off_heap_store(["a"], store, 1, "global")

    config = _config(feature_root, off_heap={"index_map_dir": str(store), "num_partitions": 1})
    loaders = prepare_feature_maps(config)

    with pytest.raises(StoreNotFoundError):
        loaders["per_user"].realize()


def test_preloaded_feature_sets_skip_reading(feature_root: Path):
    container = load_feature_sets(feature_root, ["userFeatures", "itemFeatures"])
    config = IndexingConfig.from_mapping(
        {"features": {"shards": {"global": {"section_keys": ["itemFeatures"], "intercept": False}}}}
    )

    loaders = prepare_feature_maps_default(config, feature_sets=container)

    assert loaders["global"].realize().size() == 3


def test_raw_intercept_named_feature_does_not_enable_intercept(tmp_path: Path):
    (tmp_path / "userFeatures.tsv").write_text("(INTERCEPT)\t\nage\t30\n", encoding="utf-8")
    config = IndexingConfig.from_mapping(
        {
            "features": {
                "name_and_term_set_path": str(tmp_path),
                "shards": {"per_user": {"section_keys": ["userFeatures"], "intercept": False}},
            }
        }
    )

    index_map = prepare_feature_maps(config)["per_user"].realize()

    assert not index_map.has_intercept
    assert index_map.size() == 2
    assert get_feature_key("(INTERCEPT)", "") in index_map


def test_malformed_listing_names_the_shards_that_need_it(tmp_path: Path):
    (tmp_path / "userFeatures.tsv").write_text("a\tb\tc\n", encoding="utf-8")
    (tmp_path / "itemFeatures.tsv").write_text("price\t\n", encoding="utf-8")
    config = IndexingConfig.from_mapping(
        {
            "features": {
                "name_and_term_set_path": str(tmp_path),
                "shards": {
                    "global": ["userFeatures", "itemFeatures"],
                    "per_item": ["itemFeatures"],
                    "per_user": ["userFeatures"],
                },
            }
        }
    )

    with pytest.raises(FeatureSourceError) as excinfo:
        prepare_feature_maps(config)

    assert excinfo.value.section_key == "userFeatures"
    assert "['global', 'per_user']" in str(excinfo.value)
    assert "per_item" not in str(excinfo.value)
