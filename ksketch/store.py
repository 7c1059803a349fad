"""Per-fold storage of candidate centers and their sketches."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from ksketch.lsh import RandomProjector, num_words, words_to_int


class FoldStore:
    """Ordered candidate vectors of one fold with their cached squared norms.

    Insertion order defines the candidate positions reported to callers.
    Vectors are copied on ``add`` and kept read-only.
    """

    def __init__(self, dimensions: int) -> None:
        self.dimensions = dimensions
        self._vectors: list[NDArray[np.float64]] = []
        self._length_squared: list[float] = []
        self._matrix: NDArray[np.float64] | None = None
        self._length_squared_array: NDArray[np.float64] | None = None

    def add(self, vector: NDArray[np.floating]) -> None:
        """Append a vector and its squared norm."""
        stored = np.array(vector, dtype=np.float64)
        stored.setflags(write=False)
        self._vectors.append(stored)
        self._length_squared.append(float(stored @ stored))
        self._matrix = None
        self._length_squared_array = None

    @property
    def count(self) -> int:
        return len(self._vectors)

    def __len__(self) -> int:
        return len(self._vectors)

    @property
    def vectors(self) -> list[NDArray[np.float64]]:
        return list(self._vectors)

    @property
    def length_squared(self) -> NDArray[np.float64]:
        """Cached squared norms, shape (count,)."""
        if self._length_squared_array is None:
            self._length_squared_array = np.array(self._length_squared, dtype=np.float64)
            self._length_squared_array.setflags(write=False)
        return self._length_squared_array

    def matrix(self) -> NDArray[np.float64]:
        """Stored vectors stacked into an array of shape (count, dimensions)."""
        if self._matrix is None:
            if self._vectors:
                self._matrix = np.vstack(self._vectors)
            else:
                self._matrix = np.empty((0, self.dimensions), dtype=np.float64)
            self._matrix.setflags(write=False)
        return self._matrix

    @property
    def nbytes(self) -> int:
        return sum(v.nbytes for v in self._vectors)


class FoldSketches:
    """Sketches of one fold, aligned by position with its FoldStore.

    ``words`` has shape (n_words, count): row w holds word w of every
    sketch. Alignment holds only right after ``rebuild`` and before the
    next add.
    """

    def __init__(self, projection_bits: int) -> None:
        self.projection_bits = projection_bits
        self.words = np.zeros((num_words(projection_bits), 0), dtype=np.uint64)

    def rebuild(self, store: FoldStore, projector: RandomProjector) -> None:
        """Recompute every sketch from scratch."""
        words = projector.sketch_batch(store.matrix())
        words.setflags(write=False)
        self.words = words

    def to_ints(self) -> list[int]:
        """Sketches as Python ints, in position order."""
        return [words_to_int(self.words[:, j]) for j in range(len(self))]

    def __len__(self) -> int:
        return self.words.shape[1]
