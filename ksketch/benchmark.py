"""Accuracy and speed of approximate search against exact search."""

from __future__ import annotations

import time
from typing import Any, Sequence

import numpy as np
from numpy.typing import NDArray

from ksketch.index import VectorSketchIndex


def evaluate_agreement(
    index: VectorSketchIndex,
    query_vectors: NDArray[np.floating],
    fold_id: int = 0,
) -> dict[str, float]:
    """Compare approximate and exact closest candidates on one fold.

    Ground truth is the exact scan of the fold. Queries whose exact distance
    is zero are left out of the distance ratio.

    Args:
        index: Populated index.
        query_vectors: Queries of shape (n_queries, dimensions).
        fold_id: Fold to evaluate.

    Returns:
        dict: {'agreement': fraction of queries with the same candidate,
               'mean_distance_ratio': mean approx/exact distance,
               'queries': number of queries,
               'projection_samples': shortlist size}
    """
    query_vectors = np.asarray(query_vectors, dtype=np.float64)
    n_queries = len(query_vectors)

    matches = 0
    ratios = []
    for query in query_vectors:
        exact = index.get_distance(query, fold_id, approx=False)
        approx = index.get_distance(query, fold_id, approx=True)
        if approx.index == exact.index:
            matches += 1
        if exact.distance > 0 and np.isfinite(exact.distance):
            ratios.append(approx.distance / exact.distance)

    return {
        "agreement": matches / n_queries if n_queries else 0.0,
        "mean_distance_ratio": float(np.mean(ratios)) if ratios else 1.0,
        "queries": n_queries,
        "projection_samples": index.projection_samples,
    }


def benchmark_index(
    index: VectorSketchIndex,
    query_vectors: NDArray[np.floating],
    sample_sizes: Sequence[int] = (5, 10, 20, 50),
    fold_id: int = 0,
    n_runs: int = 3,
) -> dict[str, Any]:
    """Time approximate and exact search for several shortlist sizes.

    Each shortlist size gets a copy of the index (same seed, same contents).

    Args:
        index: Populated index.
        query_vectors: Queries of shape (n_queries, dimensions).
        sample_sizes: Shortlist sizes to test.
        fold_id: Fold to query.
        n_runs: Timing repetitions per setting.

    Returns:
        Benchmark results.
    """
    query_vectors = np.asarray(query_vectors, dtype=np.float64)
    point_counts = index.get_point_counts()
    results = {
        "n_points": point_counts[fold_id],
        "n_queries": len(query_vectors),
        "projection_bits": index.projection_bits,
        "benchmarks": [],
    }

    for samples in sample_sizes:
        candidate = _copy_with_samples(index, samples)
        candidate.rebuild_indices()
        agreement = evaluate_agreement(candidate, query_vectors, fold_id)

        timings = {"approx_ms": [], "exact_ms": []}
        for _ in range(n_runs):
            for query in query_vectors:
                t0 = time.perf_counter()
                candidate.get_distance(query, fold_id, approx=True)
                timings["approx_ms"].append((time.perf_counter() - t0) * 1000)

                t0 = time.perf_counter()
                candidate.get_distance(query, fold_id, approx=False)
                timings["exact_ms"].append((time.perf_counter() - t0) * 1000)

        results["benchmarks"].append({
            "projection_samples": samples,
            "agreement": agreement["agreement"],
            "mean_distance_ratio": agreement["mean_distance_ratio"],
            "avg_approx_ms": float(np.mean(timings["approx_ms"])) if timings["approx_ms"] else 0.0,
            "avg_exact_ms": float(np.mean(timings["exact_ms"])) if timings["exact_ms"] else 0.0,
        })

    return results


def print_benchmark_results(results: dict[str, Any]) -> None:
    """Print benchmark results as a table."""
    print("=" * 72)
    print("Sketch index benchmark")
    print("=" * 72)
    print(f"Points in fold: {results['n_points']:,}")
    print(f"Queries: {results['n_queries']}")
    print(f"Projection bits: {results['projection_bits']}")
    print()

    print(f"{'Samples':>8} | {'Agreement':>10} | {'Dist ratio':>10} | {'Approx (ms)':>12} | {'Exact (ms)':>12}")
    print("-" * 72)

    for b in results["benchmarks"]:
        print(
            f"{b['projection_samples']:>8} | {b['agreement']*100:>9.1f}% | "
            f"{b['mean_distance_ratio']:>10.3f} | {b['avg_approx_ms']:>12.3f} | {b['avg_exact_ms']:>12.3f}"
        )


def _copy_with_samples(index: VectorSketchIndex, samples: int) -> VectorSketchIndex:
    copy = VectorSketchIndex(
        num_folds=index.size(),
        dimensions=index.get_dimension(),
        projection_bits=index.projection_bits,
        projection_samples=samples,
        seed=index.seed,
    )
    for fold_id in range(index.size()):
        for vector in index.get_vectors(fold_id):
            copy.add(vector, fold_id)
    return copy
