"""Print the input paths that exist for the configured date window."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    sys.path.insert(0, project_root_str)

from loguru import logger

from shardindex.pipelines import FeatureIndexDriver
from shardindex.utils import IndexingConfig, load_config


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("configs/default.yaml"),
        help="Path to the YAML configuration file.",
    )
    parser.add_argument(
        "dirs",
        nargs="*",
        help="Base directories; defaults to inputs.dirs from the config.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    config = IndexingConfig.from_mapping(load_config(args.config))
    driver = FeatureIndexDriver(config)
    paths = driver.paths_for_date_range(args.dirs or None)
    logger.info("Resolved {} input path(s)", len(paths))
    for path in paths:
        print(path)


if __name__ == "__main__":
    main()
