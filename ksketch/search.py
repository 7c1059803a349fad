"""Closest-candidate search over one fold.

Two paths share one scorer:

Exact: score every stored vector by squared Euclidean distance.
Approximate: shortlist the candidates whose sketches are closest in Hamming
distance to the query sketch, then score only the shortlist.

Squared distances use the norm identity |q|^2 + |p|^2 - 2 q.p with the
cached |p|^2 of each stored vector.
"""

from __future__ import annotations

import math
from typing import NamedTuple

import numpy as np
from numpy.typing import NDArray

from ksketch.lsh import hamming_distance_batch
from ksketch.store import FoldSketches, FoldStore

NO_CANDIDATE = -1


class ClosestCenter(NamedTuple):
    """Squared distance to the closest candidate and its position in the fold."""

    distance: float
    index: int


EMPTY_RESULT = ClosestCenter(math.inf, NO_CANDIDATE)


def select_shortlist(
    hamming: NDArray[np.integer], capacity: int, max_distance: int
) -> NDArray[np.intp]:
    """Positions of the `capacity` smallest Hamming distances.

    Same result as scanning positions in order into a bounded list that,
    once full, only admits a strictly smaller distance than its current
    worst and then evicts that worst (the latest position among equal-worst
    entries): every distance below a threshold t, plus the earliest
    positions at exactly t.

    Args:
        hamming: Distance of every stored sketch, in position order.
        capacity: Shortlist size (>= 1).
        max_distance: Largest possible distance (the sketch width).

    Returns:
        Ascending positions, at most `capacity` of them.
    """
    if capacity < 1:
        raise ValueError(f"capacity must be >= 1, got {capacity}")
    if capacity >= len(hamming):
        return np.arange(len(hamming), dtype=np.intp)

    counts = np.bincount(hamming, minlength=max_distance + 1)
    threshold = int(np.searchsorted(np.cumsum(counts), capacity))

    positions = np.flatnonzero(hamming <= threshold)
    excess = len(positions) - capacity
    if excess > 0:
        # Drop the latest positions sitting exactly at the threshold
        ties = np.flatnonzero(hamming[positions] == threshold)
        positions = np.delete(positions, ties[len(ties) - excess :])
    return positions


def score_candidates(
    query: NDArray[np.float64],
    store: FoldStore,
    positions: NDArray[np.intp],
) -> ClosestCenter:
    """Return the closest of the given positions by squared distance.

    Positions must be ascending; the first occurrence wins ties.
    """
    if len(positions) == 0:
        return EMPTY_RESULT

    query_length_squared = float(query @ query)
    candidates = store.matrix()[positions]
    distances = (
        query_length_squared
        + store.length_squared[positions]
        - 2.0 * (candidates @ query)
    )

    # argmin returns the first minimum
    best = int(np.argmin(distances))
    return ClosestCenter(float(distances[best]), int(positions[best]))


def exact_search(query: NDArray[np.float64], store: FoldStore) -> ClosestCenter:
    """Scan every stored vector of the fold."""
    if store.count == 0:
        return EMPTY_RESULT

    distances = float(query @ query) + store.length_squared - 2.0 * (store.matrix() @ query)
    best = int(np.argmin(distances))
    return ClosestCenter(float(distances[best]), best)


def approximate_search(
    query: NDArray[np.float64],
    query_sketch: NDArray[np.uint64],
    store: FoldStore,
    sketches: FoldSketches,
    projection_samples: int,
) -> ClosestCenter:
    """Score only the Hamming-distance shortlist of the fold.

    `sketches` must be aligned with `store`. A shortlist that covers the
    whole fold is the exact scan.
    """
    if projection_samples >= store.count:
        return exact_search(query, store)

    hamming = hamming_distance_batch(query_sketch, sketches.words)
    positions = select_shortlist(hamming, projection_samples, sketches.projection_bits)
    return score_candidates(query, store, positions)
