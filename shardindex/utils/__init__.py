"""Utility helpers shared across modules."""

from .config import (  # noqa: F401
    FeatureShardConfig,
    IndexingConfig,
    clone_config,
    get_by_dotted_path,
    load_config,
    set_by_dotted_path,
)
from .dates import DateRange  # noqa: F401
from .filesystem import FileSystem, LocalFileSystem  # noqa: F401
