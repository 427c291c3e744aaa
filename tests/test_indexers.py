from shardindex.data.feature_keys import INTERCEPT_KEY, get_feature_key
from shardindex.data.indexers import (
    NULL_INDEX,
    DefaultIndexMap,
    build_index_map,
    build_name_and_term_index_map,
)


def test_build_index_map_sorts_and_deduplicates():
    index_map = build_index_map(["c", "a", "b", "a"])

    assert isinstance(index_map, DefaultIndexMap)
    assert index_map.index_to_key == ["a", "b", "c"]
    assert dict(index_map.key_to_index) == {"a": 0, "b": 1, "c": 2}
    assert index_map.size() == len(index_map) == 3
    assert index_map.get_feature_name(2) == "c"
    assert list(index_map.items()) == [("a", 0), ("b", 1), ("c", 2)]


def test_index_map_missing_key():
    index_map = build_index_map(["x"])

    assert index_map.get("y") is None
    assert index_map.get_index("y") == NULL_INDEX
    assert "y" not in index_map
    assert index_map.get_feature_name(5) is None
    assert index_map.get_feature_name(-1) is None


def test_intercept_is_added_exactly_once():
    with_intercept = build_index_map(["a", INTERCEPT_KEY], add_intercept=True)
    without_intercept = build_index_map(["a"], add_intercept=False)

    assert with_intercept.index_to_key.count(INTERCEPT_KEY) == 1
    assert with_intercept.has_intercept
    assert not without_intercept.has_intercept


def test_rebuilding_from_same_input_is_identical():
    features = [("country", "US"), ("country", "DE"), ("age", "30")]

    first = build_name_and_term_index_map(features, add_intercept=True)
    second = build_name_and_term_index_map(list(reversed(features)), add_intercept=True)

    assert first.index_to_key == second.index_to_key
    assert first.get(get_feature_key("age", "30")) == second.get(get_feature_key("age", "30"))
    assert sorted(first.key_to_index.values()) == list(range(4))
