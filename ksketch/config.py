"""Construction parameters for the sketch index."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ksketch.errors import ConfigurationError

# Defaults
DEFAULT_PROJECTION_BITS = 128
DEFAULT_PROJECTION_SAMPLES = 10
DEFAULT_SEED = 42

_SEED_MIN = -(1 << 63)
_SEED_MAX = (1 << 64) - 1


@dataclass(frozen=True)
class SketchParams:
    """Parameters for VectorSketchIndex."""

    num_folds: int
    dimensions: int
    projection_bits: int = DEFAULT_PROJECTION_BITS  # Sketch width
    projection_samples: int = DEFAULT_PROJECTION_SAMPLES  # Shortlist size
    seed: int = DEFAULT_SEED

    def __post_init__(self) -> None:
        for name in ("num_folds", "dimensions", "projection_bits", "projection_samples"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 1:
                raise ConfigurationError(f"{name} must be an integer >= 1, got {value!r}")

        if isinstance(self.seed, bool) or not isinstance(self.seed, (int, np.integer)):
            raise ConfigurationError(f"seed must be an integer, got {self.seed!r}")
        if not _SEED_MIN <= self.seed <= _SEED_MAX:
            raise ConfigurationError(f"seed must fit in 64 bits, got {self.seed}")


def seed_to_entropy(seed: int) -> int:
    """Map a signed or unsigned 64-bit seed to the non-negative value numpy accepts."""
    return int(seed) & _SEED_MAX
