import pickle
import threading
from pathlib import Path

from shardindex.data.index_loaders import DefaultIndexMapLoader, OffHeapIndexMapLoader
from shardindex.data.indexers import build_index_map
from shardindex.data.offheap import OffHeapIndexMap, write_off_heap_store


def test_default_loader_ships_its_map_as_data():
    loader = DefaultIndexMapLoader(build_index_map(["a", "b"], add_intercept=True))

    restored = pickle.loads(pickle.dumps(loader))

    assert restored.realize().index_to_key == loader.realize().index_to_key


def test_off_heap_loader_opens_lazily_and_once(tmp_path: Path):
    write_off_heap_store(["a", "b", "c"], tmp_path, 2, "global")
    loader = OffHeapIndexMapLoader(tmp_path, 2, "global")

    assert not loader.is_open

    results = []
    threads = [threading.Thread(target=lambda: results.append(loader.realize())) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert loader.is_open
    assert all(result is results[0] for result in results)
    assert isinstance(results[0], OffHeapIndexMap)
    assert results[0].size() == 3


def test_off_heap_loader_pickles_without_open_handles(tmp_path: Path):
    write_off_heap_store(["a", "b"], tmp_path, 1, "global")
    loader = OffHeapIndexMapLoader(tmp_path, 1, "global")
    loader.realize()

    restored = pickle.loads(pickle.dumps(loader))

    assert not restored.is_open
    assert restored.shard_id == "global"
    assert restored.realize().get("b") == loader.realize().get("b")


def test_off_heap_loader_does_not_touch_disk_until_realized(tmp_path: Path):
    loader = OffHeapIndexMapLoader(tmp_path / "nowhere", 4, "global")

    assert "nowhere" in repr(loader)
    assert not loader.is_open


def test_off_heap_loader_close_releases_and_reopens(tmp_path: Path):
    write_off_heap_store(["a", "b"], tmp_path, 2, "global")

    with OffHeapIndexMapLoader(tmp_path, 2, "global") as loader:
        first = loader.realize()
        loader.close()

        assert first.closed
        assert not loader.is_open

        second = loader.realize()
        assert second is not first
        assert second.get("a") is not None

    assert second.closed
    assert not loader.is_open


def test_default_loader_close_keeps_its_map():
    loader = DefaultIndexMapLoader(build_index_map(["a"], add_intercept=False))

    loader.close()

    assert loader.realize().get("a") == 0
