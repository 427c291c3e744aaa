"""Driver-side pipelines: index map preparation and input path resolution."""

from .date_paths import input_paths_within_date_range, paths_for_date_range  # noqa: F401
from .driver import FeatureIndexDriver  # noqa: F401
from .feature_maps import (  # noqa: F401
    prepare_feature_maps,
    prepare_feature_maps_default,
    prepare_feature_maps_off_heap,
)
