"""Build per-shard feature index maps and optionally persist them as off-heap stores."""

from __future__ import annotations

import sys
import argparse
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    sys.path.insert(0, project_root_str)

import yaml
from loguru import logger

from shardindex.data import write_off_heap_store
from shardindex.pipelines import prepare_feature_maps_default
from shardindex.utils import IndexingConfig, clone_config, load_config, set_by_dotted_path


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("configs/default.yaml"),
        help="Path to the YAML configuration file.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Write an off-heap store for every shard into this directory.",
    )
    parser.add_argument(
        "--num-partitions",
        type=int,
        default=None,
        help="Partition count of the written stores (default: off_heap.num_partitions).",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override a config value using dotted-path syntax, e.g. features.shards.global.intercept=false.",
    )
    return parser.parse_args()


def apply_overrides(config: dict, overrides: list[str]) -> dict:
    updated = clone_config(config)
    for override in overrides:
        key, sep, raw_value = override.partition("=")
        if not sep:
            raise SystemExit(f"Override '{override}' must look like KEY=VALUE")
        set_by_dotted_path(updated, key.strip(), yaml.safe_load(raw_value))
    return updated


def main() -> None:
    args = parse_args()
    raw_config = apply_overrides(dict(load_config(args.config)), args.overrides)
    config = IndexingConfig.from_mapping(raw_config)

    logger.info("Building in-memory index maps from {}", config.feature_name_and_term_set_path)
    loaders = prepare_feature_maps_default(config)
    for shard_id, loader in loaders.items():
        logger.info("Shard '{}' has {} features", shard_id, loader.realize().size())

    if args.output_dir is None:
        return

    num_partitions = args.num_partitions or config.off_heap_index_map_num_partitions
    for shard_id, loader in loaders.items():
        index_map = loader.realize()
        # The intercept, if any, is already one of the keys.
        write_off_heap_store(
            (key for key, _ in index_map.items()),
            args.output_dir,
            num_partitions,
            shard_id,
        )


if __name__ == "__main__":
    main()
