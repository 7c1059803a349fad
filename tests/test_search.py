"""Tests for ksketch/search.py."""

import math
import time

import numpy as np
import pytest

from ksketch.lsh import RandomProjector, hamming_distance_batch
from ksketch.search import (
    EMPTY_RESULT,
    ClosestCenter,
    approximate_search,
    exact_search,
    select_shortlist,
)
from ksketch.store import FoldSketches, FoldStore


def build_fold(vectors, projector):
    store = FoldStore(projector.dimensions)
    for vector in vectors:
        store.add(vector)
    sketches = FoldSketches(projector.projection_bits)
    sketches.rebuild(store, projector)
    return store, sketches


def select(hammings, capacity, max_distance=64):
    return select_shortlist(np.array(hammings, dtype=np.uint8), capacity, max_distance).tolist()


class TestSelectShortlist:
    """Tests for select_shortlist function."""

    def test_fills_to_capacity(self):
        """Every position is kept while the shortlist is not full."""
        assert select([9, 8, 7], 3) == [0, 1, 2]

    def test_strict_improvement_evicts_worst(self):
        """A strictly smaller distance replaces the worst entry."""
        assert select([5, 3, 4], 2) == [1, 2]

    def test_equal_distance_rejected_when_full(self):
        """A tie with the worst entry does not enter."""
        assert select([5, 3, 5], 2) == [0, 1]

    def test_eviction_prefers_latest_among_equal_worst(self):
        """Among equal-worst entries the later position is evicted."""
        assert select([4, 4, 2, 1], 3) == [0, 2, 3]

    def test_all_equal_keeps_earliest(self):
        """With every distance equal the first positions win."""
        assert select([3] * 10, 4) == [0, 1, 2, 3]

    @pytest.mark.parametrize("capacity", [1, 7, 49])
    def test_keeps_smallest_distances(self, capacity):
        """The result is the k smallest distances, ties by earliest position."""
        rng = np.random.default_rng(0)
        hammings = rng.integers(0, 6, size=50).tolist()
        expected = sorted(range(50), key=lambda j: (hammings[j], j))[:capacity]
        assert select(hammings, capacity, max_distance=5) == sorted(expected)

    def test_wide_sketch_distances(self):
        """Multi-word distances above 255 are counted correctly."""
        hammings = np.array([300, 2, 129, 300, 0], dtype=np.int64)
        assert select_shortlist(hammings, 3, 320).tolist() == [1, 2, 4]

    def test_capacity_covers_everything(self):
        """A capacity at least the number of sketches keeps all positions."""
        assert select([2, 1], 5) == [0, 1]
        assert select([], 3) == []

    def test_invalid_capacity(self):
        """Capacity must be positive."""
        with pytest.raises(ValueError):
            select([1, 2], 0)


class TestExactSearch:
    """Tests for exact_search function."""

    def test_empty_fold_sentinel(self):
        """An empty fold returns (inf, -1)."""
        result = exact_search(np.array([1.0, 2.0]), FoldStore(2))
        assert result == EMPTY_RESULT
        assert math.isinf(result.distance)
        assert result.index == -1

    def test_matches_brute_force(self, sample_vectors, sample_vector):
        """Distance equals sum((q - p)^2) for the closest point."""
        store = FoldStore(64)
        for vector in sample_vectors:
            store.add(vector)

        result = exact_search(sample_vector, store)

        brute = ((sample_vectors - sample_vector) ** 2).sum(axis=1)
        assert result.index == int(np.argmin(brute))
        assert result.distance == pytest.approx(brute.min(), rel=1e-9)

    def test_first_occurrence_wins_ties(self):
        """Duplicate closest points resolve to the earliest position."""
        store = FoldStore(2)
        for point in ([5.0, 5.0], [1.0, 0.0], [1.0, 0.0]):
            store.add(np.array(point))
        result = exact_search(np.array([1.0, 0.0]), store)
        assert result.index == 1
        assert result.distance == pytest.approx(0.0)

    def test_result_unpacks(self):
        """ClosestCenter unpacks as (distance, index)."""
        store = FoldStore(1)
        store.add(np.array([2.0]))
        distance, index = exact_search(np.array([0.0]), store)
        assert (distance, index) == (pytest.approx(4.0), 0)
        assert isinstance(exact_search(np.array([0.0]), store), ClosestCenter)


class TestApproximateSearch:
    """Tests for approximate_search function."""

    def test_empty_fold_sentinel(self):
        """An empty fold returns (inf, -1)."""
        projector = RandomProjector(3, 8, seed=1)
        store, sketches = build_fold([], projector)
        query = np.ones(3)
        result = approximate_search(query, projector.sketch(query), store, sketches, 4)
        assert result == EMPTY_RESULT

    def test_never_below_exact(self, sample_vectors):
        """Approximate distance is never smaller than the exact distance."""
        projector = RandomProjector(64, 16, seed=11)
        store, sketches = build_fold(sample_vectors[:80], projector)
        for query in sample_vectors[80:]:
            approx = approximate_search(query, projector.sketch(query), store, sketches, 5)
            exact = exact_search(query, store)
            assert approx.distance >= exact.distance - 1e-9

    def test_saturated_shortlist_equals_exact(self, sample_vectors):
        """With samples >= count, approximate search is exact search."""
        projector = RandomProjector(64, 16, seed=11)
        store, sketches = build_fold(sample_vectors[:30], projector)
        for query in sample_vectors[30:40]:
            approx = approximate_search(query, projector.sketch(query), store, sketches, 30)
            assert approx == exact_search(query, store)

    def test_shortlist_size_bounded(self, sample_vectors):
        """The shortlist never exceeds projection_samples positions."""
        projector = RandomProjector(64, 16, seed=11)
        _, sketches = build_fold(sample_vectors[:30], projector)
        query_sketch = projector.sketch(sample_vectors[50])
        hamming = hamming_distance_batch(query_sketch, sketches.words)
        positions = select_shortlist(hamming, 4, 16).tolist()
        assert len(positions) == 4
        assert positions == sorted(positions)

    def test_self_query_found(self, sample_vectors):
        """A stored vector is its own closest candidate at distance ~0."""
        projector = RandomProjector(64, 32, seed=11)
        store, sketches = build_fold(sample_vectors[:50], projector)
        query = sample_vectors[17]
        result = approximate_search(query, projector.sketch(query), store, sketches, 3)
        assert result.index == 17
        assert result.distance == pytest.approx(0.0, abs=1e-9)


class TestApproximateSearchSpeed:
    """Approximate search must pay off against the exact scan."""

    def test_large_fold_faster_than_exact(self):
        """One large fold, small shortlist: approximate is not slower than exact."""
        rng = np.random.default_rng(3)
        points = rng.standard_normal((20_000, 256))
        queries = rng.standard_normal((20, 256))
        projector = RandomProjector(256, 64, seed=5)
        store, sketches = build_fold(points, projector)
        query_sketches = [projector.sketch(query) for query in queries]

        # Warm the cached matrix and squared norms
        exact_search(queries[0], store)

        start = time.perf_counter()
        for query in queries:
            exact_search(query, store)
        exact_time = time.perf_counter() - start

        start = time.perf_counter()
        for query, query_sketch in zip(queries, query_sketches):
            approximate_search(query, query_sketch, store, sketches, 10)
        approx_time = time.perf_counter() - start

        assert approx_time <= exact_time
