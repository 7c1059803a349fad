"""VectorSketchIndex: closest-center lookups for k-means|| seeding.

Each fold holds one independently sampled set of candidate centers. For
every point drawn during an oversampling round the caller asks, per fold,
which candidate is closest and how far it is, either exactly or through the
sketch shortlist.

Usage:
    from ksketch import VectorSketchIndex

    index = VectorSketchIndex(num_folds=3, dimensions=2, projection_bits=4,
                              projection_samples=2, seed=42)
    index.add(np.array([1.0, 0.0]), 0)
    distance, position = index.get_distance(np.array([0.9, 0.1]), 0, approx=True)
"""

from __future__ import annotations

import logging
import operator
import threading
from enum import Enum
from typing import Any, Iterable, Sequence

import numpy as np
from numpy.typing import NDArray
from tqdm import tqdm

from ksketch.config import SketchParams
from ksketch.errors import ConfigurationError, DimensionMismatchError, FoldIndexError
from ksketch.lsh import RandomProjector
from ksketch.search import ClosestCenter, approximate_search, exact_search
from ksketch.store import FoldSketches, FoldStore
from ksketch.weights import WeightedVector, WeightSource, pair_fold, pair_source

logger = logging.getLogger(__name__)


class ProjectionState(Enum):
    """Whether the shared projection matrix has been drawn."""

    UNBUILT = "unbuilt"
    BUILT = "built"


class IndexState(Enum):
    """Whether the fold sketches match the stored vectors."""

    STALE = "stale"  # An add happened since the last rebuild
    FRESH = "fresh"


class VectorSketchIndex:
    """Candidate centers of several folds with exact and sketch-based search.

    Not thread-safe: one writer (or one reader) at a time. Only the first
    materialization of the projection is guarded internally.
    """

    def __init__(
        self,
        num_folds: int,
        dimensions: int,
        projection_bits: int,
        projection_samples: int,
        seed: int,
    ) -> None:
        """Initialize an index with empty folds.

        Args:
            num_folds: Number of folds (>= 1).
            dimensions: Dimension of every vector, fixed for the index lifetime.
            projection_bits: Sketch width in bits.
            projection_samples: Shortlist size for approximate search.
            seed: 64-bit seed of the projection matrix.

        Raises:
            ConfigurationError: If any parameter is out of range.
        """
        self.params = SketchParams(
            num_folds=num_folds,
            dimensions=dimensions,
            projection_bits=projection_bits,
            projection_samples=projection_samples,
            seed=seed,
        )
        self._stores = [FoldStore(self.dimensions) for _ in range(num_folds)]
        self._sketches = [FoldSketches(self.projection_bits) for _ in range(num_folds)]
        self._projector: RandomProjector | None = None
        self._projector_lock = threading.Lock()

        self.projection_state = ProjectionState.UNBUILT
        self.index_state = IndexState.STALE
        self.rebuild_count = 0

    @classmethod
    def from_params(cls, params: SketchParams) -> "VectorSketchIndex":
        """Create an empty index from a SketchParams instance."""
        return cls(
            num_folds=params.num_folds,
            dimensions=params.dimensions,
            projection_bits=params.projection_bits,
            projection_samples=params.projection_samples,
            seed=params.seed,
        )

    @classmethod
    def from_centers(
        cls,
        center_sets: Sequence[Sequence[NDArray[np.floating]]],
        projection_bits: int,
        projection_samples: int,
        seed: int,
    ) -> "VectorSketchIndex":
        """Create an index with one fold per known center set.

        The dimension is taken from the first vector of the first set.

        Raises:
            ConfigurationError: If there are no sets, the first set is empty,
                or a vector has a different dimension.
        """
        if len(center_sets) == 0:
            raise ConfigurationError("At least one center set is required")
        if len(center_sets[0]) == 0:
            raise ConfigurationError("The first center set must not be empty")

        dimensions = len(center_sets[0][0])
        index = cls(len(center_sets), dimensions, projection_bits, projection_samples, seed)
        for fold_id, centers in enumerate(center_sets):
            for vector in centers:
                try:
                    index.add(vector, fold_id)
                except DimensionMismatchError as e:
                    raise ConfigurationError(
                        f"Center set {fold_id} has inconsistent dimensions: {e}"
                    ) from e
        return index

    @property
    def dimensions(self) -> int:
        return int(self.params.dimensions)

    @property
    def projection_bits(self) -> int:
        return int(self.params.projection_bits)

    @property
    def projection_samples(self) -> int:
        return int(self.params.projection_samples)

    @property
    def seed(self) -> int:
        return int(self.params.seed)

    def get_dimension(self) -> int:
        """Dimension of the vectors in every fold."""
        return self.dimensions

    def size(self) -> int:
        """Number of folds."""
        return len(self._stores)

    def __len__(self) -> int:
        return len(self._stores)

    def get_point_counts(self) -> list[int]:
        """Number of vectors stored in each fold."""
        return [store.count for store in self._stores]

    def get_vectors(self, fold_id: int) -> list[NDArray[np.float64]]:
        """Stored vectors of a fold in insertion order."""
        fold_id = self._check_fold(fold_id)
        return self._stores[fold_id].vectors

    def add(self, vector: NDArray[np.floating], fold_id: int) -> None:
        """Append a candidate center to a fold.

        Raises:
            DimensionMismatchError: If the vector has the wrong dimension.
            FoldIndexError: If fold_id is not a valid fold.
        """
        fold_id = self._check_fold(fold_id)
        vector = self._as_vector(vector)
        self._stores[fold_id].add(vector)
        self.index_state = IndexState.STALE

    def rebuild_indices(self) -> None:
        """Draw the projection if needed and recompute all fold sketches."""
        projector = self._ensure_projector()
        for store, sketches in zip(self._stores, self._sketches):
            sketches.rebuild(store, projector)
        self.index_state = IndexState.FRESH
        self.rebuild_count += 1
        logger.debug(
            "Rebuilt sketches for %d folds (%d points)",
            len(self._stores),
            sum(self.get_point_counts()),
        )

    def get_distance(
        self, vector: NDArray[np.floating], fold_id: int, approx: bool
    ) -> ClosestCenter:
        """Find the candidate of a fold closest to a vector.

        Args:
            vector: Query vector.
            fold_id: Fold to search.
            approx: Score only the sketch shortlist instead of the whole fold.

        Returns:
            ClosestCenter(distance, index) with the squared distance, or
            (inf, -1) when the fold is empty.
        """
        fold_id = self._check_fold(fold_id)
        query = self._as_vector(vector)
        if not approx:
            return exact_search(query, self._stores[fold_id])

        projector = self._fresh_projector()
        return approximate_search(
            query,
            projector.sketch(query),
            self._stores[fold_id],
            self._sketches[fold_id],
            self.projection_samples,
        )

    def get_distances(
        self, vector: NDArray[np.floating], approx: bool
    ) -> list[ClosestCenter]:
        """Closest candidate in every fold, in fold-id order."""
        query = self._as_vector(vector)
        if not approx:
            return [exact_search(query, store) for store in self._stores]

        projector = self._fresh_projector()
        query_sketch = projector.sketch(query)
        return [
            approximate_search(
                query, query_sketch, store, sketches, self.projection_samples
            )
            for store, sketches in zip(self._stores, self._sketches)
        ]

    def get_distances_batch(
        self,
        vectors: Iterable[NDArray[np.floating]],
        approx: bool,
        show_progress: bool = False,
    ) -> list[list[ClosestCenter]]:
        """Run get_distances for several query vectors.

        Args:
            vectors: Query vectors, e.g. an array of shape (n, dimensions).
            approx: Use the sketch shortlist.
            show_progress: Show a progress bar.

        Returns:
            One list of per-fold results per query vector.
        """
        iterator = tqdm(vectors, desc="Closest centers") if show_progress else vectors
        return [self.get_distances(vector, approx) for vector in iterator]

    def get_weighted_vectors_for_fold(
        self, fold_id: int, weights: Sequence[float]
    ) -> list[WeightedVector]:
        """Pair the vectors of a fold, in stored order, with weights[i]."""
        fold_id = self._check_fold(fold_id)
        return pair_fold(self._stores[fold_id].vectors, weights, fold_id)

    def get_weighted_vectors(self, weight_source: WeightSource) -> list[list[WeightedVector]]:
        """Pair every stored vector with weight_source.get(fold, position)."""
        return [
            pair_source(store.vectors, weight_source, fold_id)
            for fold_id, store in enumerate(self._stores)
        ]

    def get_stats(self) -> dict[str, Any]:
        """Summary of the index contents and lifecycle."""
        stats = {
            "num_folds": self.size(),
            "dimensions": self.dimensions,
            "projection_bits": self.projection_bits,
            "projection_samples": self.projection_samples,
            "point_counts": self.get_point_counts(),
            "projection_state": self.projection_state.value,
            "index_state": self.index_state.value,
            "rebuild_count": self.rebuild_count,
        }
        stats["vectors_memory_mb"] = sum(s.nbytes for s in self._stores) / (1024 * 1024)
        return stats

    @property
    def projection(self) -> NDArray[np.float64] | None:
        """The projection matrix, or None before the first rebuild."""
        if self._projector is None:
            return None
        return self._projector.projection

    def sketches(self, fold_id: int) -> list[int]:
        """Sketches of a fold as of the last rebuild."""
        fold_id = self._check_fold(fold_id)
        return self._sketches[fold_id].to_ints()

    def _fresh_projector(self) -> RandomProjector:
        if self.index_state is IndexState.STALE:
            self.rebuild_indices()
        return self._projector

    def _ensure_projector(self) -> RandomProjector:
        with self._projector_lock:
            if self.projection_state is ProjectionState.UNBUILT:
                self._projector = RandomProjector(
                    self.dimensions, self.projection_bits, self.seed
                )
                self.projection_state = ProjectionState.BUILT
                logger.debug(
                    "Drew %dx%d projection (seed=%d)",
                    self.dimensions,
                    self.projection_bits,
                    self.seed,
                )
        return self._projector

    def _check_fold(self, fold_id: int) -> int:
        try:
            position = operator.index(fold_id)
        except TypeError as e:
            raise FoldIndexError(fold_id, len(self._stores)) from e
        if not 0 <= position < len(self._stores):
            raise FoldIndexError(fold_id, len(self._stores))
        return position

    def _as_vector(self, vector: NDArray[np.floating]) -> NDArray[np.float64]:
        array = np.asarray(vector, dtype=np.float64)
        if array.ndim != 1 or array.shape[0] != self.dimensions:
            actual = array.shape[0] if array.ndim == 1 else array.size
            raise DimensionMismatchError(self.dimensions, actual)
        return array
