"""Feature keys, name-and-term listings and the index map backends."""

from .feature_keys import INTERCEPT_KEY, get_feature_key, split_feature_key  # noqa: F401
from .index_loaders import (  # noqa: F401
    DefaultIndexMapLoader,
    IndexMapLoader,
    OffHeapIndexMapLoader,
)
from .indexers import (  # noqa: F401
    DefaultIndexMap,
    IndexMap,
    build_index_map,
    build_name_and_term_index_map,
)
from .loaders import FeatureSetContainer, NameAndTerm, load_feature_sets  # noqa: F401
from .offheap import OffHeapIndexMap, write_off_heap_store  # noqa: F401
from .vectors import FeatureVectorDataset, vectorize_features  # noqa: F401
