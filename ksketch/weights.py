"""Weighted export of fold candidates for the reweighting step.

After seeding, every candidate center gets a weight (typically the number
of data points for which it was the closest candidate in its fold). The
weights come from outside the index through the WeightSource protocol;
ClosestCenterWeights is a table that accumulates them from query results.
"""

from __future__ import annotations

import operator
from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from ksketch.errors import FoldIndexError, WeightCountMismatchError
from ksketch.search import NO_CANDIDATE, ClosestCenter


@dataclass(frozen=True)
class WeightedVector:
    """A candidate center with its weight."""

    vector: NDArray[np.float64]
    weight: float


class WeightSource(Protocol):
    """Weight lookup by fold id and position within the fold."""

    def get(self, fold_id: int, position: int) -> float:
        ...


def pair_fold(
    vectors: Sequence[NDArray[np.float64]],
    weights: Sequence[float],
    fold_id: int,
) -> list[WeightedVector]:
    """Pair vectors[i] with weights[i]; extra weights are ignored.

    Raises:
        WeightCountMismatchError: If there are fewer weights than vectors.
    """
    if len(weights) < len(vectors):
        raise WeightCountMismatchError(
            f"Fold {fold_id} has {len(vectors)} points but only {len(weights)} weights"
        )
    return [WeightedVector(vector, weights[i]) for i, vector in enumerate(vectors)]


def pair_source(
    vectors: Sequence[NDArray[np.float64]],
    source: WeightSource,
    fold_id: int,
) -> list[WeightedVector]:
    """Pair vectors[j] with source.get(fold_id, j).

    Raises:
        WeightCountMismatchError: If the source has no weight for a position.
    """
    weighted = []
    for position, vector in enumerate(vectors):
        try:
            weight = source.get(fold_id, position)
        except (IndexError, KeyError) as e:
            raise WeightCountMismatchError(
                f"No weight for fold {fold_id}, position {position}"
            ) from e
        weighted.append(WeightedVector(vector, weight))
    return weighted


class ClosestCenterWeights:
    """Per-fold weight table shaped like the index folds.

    Implements WeightSource. Positions beyond the shape it was created with
    raise IndexError, so a table built before further adds is reported as
    too short on export.
    """

    def __init__(self, point_counts: Sequence[int]) -> None:
        """
        Args:
            point_counts: Number of candidates per fold, e.g.
                ``index.get_point_counts()``.
        """
        self._weights = [np.zeros(count, dtype=np.float64) for count in point_counts]

    @property
    def num_folds(self) -> int:
        return len(self._weights)

    def add(self, fold_id: int, position: int, weight: float = 1.0) -> None:
        """Add weight to one candidate."""
        self._fold(fold_id)[self._position(fold_id, position)] += weight

    def update(self, results: Iterable[ClosestCenter], weight: float = 1.0) -> None:
        """Credit the closest candidate of each fold.

        Args:
            results: Per-fold results in fold-id order, as returned by
                ``VectorSketchIndex.get_distances``.
            weight: Weight of the query point.
        """
        for fold_id, result in enumerate(results):
            if result.index != NO_CANDIDATE:
                self.add(fold_id, result.index, weight)

    def get(self, fold_id: int, position: int) -> float:
        return float(self._fold(fold_id)[self._position(fold_id, position)])

    def for_fold(self, fold_id: int) -> NDArray[np.float64]:
        """Copy of the weights of one fold."""
        return self._fold(fold_id).copy()

    def to_frame(self) -> pd.DataFrame:
        """All weights as a DataFrame with columns fold, position, weight."""
        frames = [
            pd.DataFrame(
                {
                    "fold": np.full(len(weights), fold_id, dtype=np.int64),
                    "position": np.arange(len(weights), dtype=np.int64),
                    "weight": weights,
                }
            )
            for fold_id, weights in enumerate(self._weights)
        ]
        if not frames:
            return pd.DataFrame(columns=["fold", "position", "weight"])
        return pd.concat(frames, ignore_index=True)

    def _fold(self, fold_id: int) -> NDArray[np.float64]:
        try:
            position = operator.index(fold_id)
        except TypeError as e:
            raise FoldIndexError(fold_id, len(self._weights)) from e
        if not 0 <= position < len(self._weights):
            raise FoldIndexError(fold_id, len(self._weights))
        return self._weights[position]

    def _position(self, fold_id: int, position: int) -> int:
        if not 0 <= position < len(self._weights[fold_id]):
            raise IndexError(
                f"Position {position} out of range for fold {fold_id} "
                f"({len(self._weights[fold_id])} points)"
            )
        return position
