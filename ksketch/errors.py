"""Exceptions raised by the sketch index."""

from __future__ import annotations


class SketchIndexError(Exception):
    """Base class for all sketch index errors."""


class DimensionMismatchError(SketchIndexError, ValueError):
    """A vector does not have the index dimension."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Expected vector of dimension {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class FoldIndexError(SketchIndexError, IndexError):
    """A fold id is not an integer in [0, num_folds)."""

    def __init__(self, fold_id: int, num_folds: int) -> None:
        super().__init__(f"Fold id {fold_id!r} is not an integer in [0, {num_folds})")
        self.fold_id = fold_id
        self.num_folds = num_folds


class WeightCountMismatchError(SketchIndexError, ValueError):
    """Fewer weights were supplied than there are points in a fold."""


class ConfigurationError(SketchIndexError, ValueError):
    """Invalid construction parameters or initial center sets."""
