"""
Conversion of raw (name, term, value) features into indexed sparse vectors.
"""

from __future__ import annotations

from typing import Iterable, Optional

import pandas as pd
import torch
from torch.utils.data import Dataset

from .feature_keys import INTERCEPT_KEY, get_feature_key
from .index_loaders import IndexMapLoader
from .indexers import IndexMap


def vectorize_features(
    features: Iterable[tuple[str, str, float]],
    index_map: IndexMap,
    *,
    add_intercept: bool = True,
) -> torch.Tensor:
    """
    Build a 1-D sparse float tensor of length `len(index_map)`.

    Features missing from the map are dropped and repeated features are summed.
    When the map carries an intercept and `add_intercept` is set, the intercept
    position is set to 1.0.
    """
    positions: list[int] = []
    values: list[float] = []
    for name, term, value in features:
        index = index_map.get(get_feature_key(name, term))
        if index is not None:
            positions.append(index)
            values.append(float(value))

    if add_intercept:
        intercept_index = index_map.get(INTERCEPT_KEY)
        if intercept_index is not None:
            positions.append(intercept_index)
            values.append(1.0)

    return torch.sparse_coo_tensor(
        torch.tensor([positions], dtype=torch.long).reshape(1, len(positions)),
        torch.tensor(values, dtype=torch.float32),
        size=(index_map.size(),),
    ).coalesce()


class FeatureVectorDataset(Dataset):
    """
    Rows of raw feature lists exposed as sparse vectors of one feature shard.

    Parameters
    ----------
    frame:
        DataFrame whose `feature_col` holds lists of (name, term, value) triples.
    loader:
        Index map loader of the shard; realized on first access so that the
        map is opened inside the consuming process.
    """

    def __init__(
        self,
        frame: pd.DataFrame,
        loader: IndexMapLoader,
        *,
        feature_col: str = "features",
        label_col: Optional[str] = "label",
    ) -> None:
        if feature_col not in frame.columns:
            raise ValueError(f"Frame must contain a '{feature_col}' column.")
        if label_col is not None and label_col not in frame.columns:
            raise ValueError(f"Frame must contain a '{label_col}' column.")

        self._features = frame[feature_col].tolist()
        self._labels = (
            torch.as_tensor(frame[label_col].to_numpy(dtype="float32"))
            if label_col is not None
            else None
        )
        self._loader = loader
        self._index_map: Optional[IndexMap] = None

    @property
    def index_map(self) -> IndexMap:
        if self._index_map is None:
            self._index_map = self._loader.realize()
        return self._index_map

    def __getstate__(self) -> dict:
        # DataLoader workers realize their own copy of the map.
        state = self.__dict__.copy()
        state["_index_map"] = None
        return state

    def __len__(self) -> int:
        return len(self._features)

    def __getitem__(self, idx: int) -> tuple[torch.Tensor, Optional[torch.Tensor]]:
        vector = vectorize_features(self._features[idx], self.index_map)
        label = self._labels[idx] if self._labels is not None else None
        return vector, label
