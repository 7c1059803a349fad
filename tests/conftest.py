"""Pytest fixtures for ksketch tests."""

import numpy as np
import pytest

from ksketch.index import VectorSketchIndex
from ksketch.lsh import RandomProjector


@pytest.fixture
def projector():
    """Create a RandomProjector for tests."""
    return RandomProjector(dimensions=64, projection_bits=128, seed=42)


@pytest.fixture
def sample_vectors():
    """Generate sample vectors for testing."""
    rng = np.random.default_rng(42)
    return rng.standard_normal((100, 64))


@pytest.fixture
def sample_vector():
    """Generate a single sample vector."""
    rng = np.random.default_rng(7)
    return rng.standard_normal(64)


@pytest.fixture
def scenario_index():
    """2-D index with fold 0 holding (1,0), (0,1), (-1,0)."""
    index = VectorSketchIndex(
        num_folds=2, dimensions=2, projection_bits=4, projection_samples=2, seed=42
    )
    for point in ([1.0, 0.0], [0.0, 1.0], [-1.0, 0.0]):
        index.add(np.array(point), 0)
    return index


@pytest.fixture
def populated_index(sample_vectors):
    """Index with three folds of random candidates."""
    index = VectorSketchIndex(
        num_folds=3, dimensions=64, projection_bits=32, projection_samples=5, seed=123
    )
    for i, vector in enumerate(sample_vectors[:60]):
        index.add(vector, i % 3)
    return index
