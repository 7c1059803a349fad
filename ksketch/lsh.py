"""Random-hyperplane sketches (SimHash) for the sketch index.

A seeded Gaussian projection matrix maps a vector to a fixed-width sign
bitset: bit j is set iff the projection onto direction j is strictly
positive. Sketches are packed little-endian into 64-bit words (bit j lives
in word j // 64, bit j % 64), so the Hamming distance between two sketches
is the popcount of their XOR, summed over words.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from ksketch.config import seed_to_entropy

WORD_BITS = 64


def generate_projection(
    dimensions: int, projection_bits: int, seed: int
) -> NDArray[np.float64]:
    """Generate the Gaussian projection matrix from a seed.

    One N(0,1) draw per cell, row-major by dimension then by bit index, all
    from a single seeded stream. Changing this draw order changes every
    sketch built with the same seed.

    Args:
        dimensions: Vector dimension.
        projection_bits: Number of random directions (sketch width).
        seed: Any 64-bit integer, signed or unsigned.

    Returns:
        Read-only array of shape (dimensions, projection_bits).
    """
    rng = np.random.default_rng(seed_to_entropy(seed))
    projection = rng.standard_normal((dimensions, projection_bits))
    projection.setflags(write=False)
    return projection


def num_words(projection_bits: int) -> int:
    """Number of 64-bit words holding a sketch of the given width."""
    return -(-projection_bits // WORD_BITS)


def pack_words(bits: NDArray[np.bool_]) -> NDArray[np.uint64]:
    """Pack sign bits into 64-bit words.

    Args:
        bits: Boolean array of shape (n, projection_bits).

    Returns:
        Array of shape (n_words, n); row w holds word w of every sketch.
    """
    n, width = bits.shape
    packed = np.packbits(bits, axis=1, bitorder="little")  # (n, ceil(width / 8))
    padded = np.zeros((n, num_words(width) * 8), dtype=np.uint8)
    padded[:, : packed.shape[1]] = packed
    return np.ascontiguousarray(padded.view("<u8").T)


def words_to_int(words: NDArray[np.uint64]) -> int:
    """Single sketch as a Python int, sketch bit j -> int bit j."""
    return int.from_bytes(np.asarray(words, dtype="<u8").tobytes(), "little")


class RandomProjector:
    """Sign sketches from a fixed seeded projection.

    The projection is drawn once at construction and never regenerated, so
    the same seed always yields the same matrix and the same sketches.
    """

    def __init__(self, dimensions: int, projection_bits: int, seed: int) -> None:
        """Initialize the projector.

        Args:
            dimensions: Input vector dimension.
            projection_bits: Sketch width in bits.
            seed: Random seed for the projection matrix.
        """
        self.dimensions = dimensions
        self.projection_bits = projection_bits
        self.seed = seed
        self.projection = generate_projection(dimensions, projection_bits, seed)

    def sketch(self, vector: NDArray[np.floating]) -> NDArray[np.uint64]:
        """Convert a vector to its sketch.

        Args:
            vector: 1D array of shape (dimensions,).

        Returns:
            Sketch words, shape (n_words,).
        """
        # (dimensions,) @ (dimensions, bits) -> (bits,)
        projections = vector @ self.projection
        return pack_words((projections > 0.0)[np.newaxis, :])[:, 0]

    def sketch_batch(self, vectors: NDArray[np.floating]) -> NDArray[np.uint64]:
        """Convert multiple vectors to sketches.

        Args:
            vectors: 2D array of shape (n, dimensions).

        Returns:
            Sketch words of shape (n_words, n).
        """
        projections = vectors @ self.projection  # (n, bits)
        return pack_words(projections > 0.0)


def hamming_distance_batch(
    query_words: NDArray[np.uint64], fold_words: NDArray[np.uint64]
) -> NDArray[np.integer]:
    """Hamming distances between one sketch and many.

    Args:
        query_words: Query sketch, shape (n_words,).
        fold_words: Stored sketches, shape (n_words, n).

    Returns:
        Array of n distances (0 to projection_bits).
    """
    distances = np.bitwise_count(fold_words[0] ^ query_words[0])
    if len(query_words) > 1:
        distances = distances.astype(np.int64)
        for w in range(1, len(query_words)):
            distances += np.bitwise_count(fold_words[w] ^ query_words[w])
    return distances
