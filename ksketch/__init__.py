"""ksketch - closest-center sketch index for k-means|| seeding."""

__version__ = "0.1.0"

from .config import SketchParams
from .errors import (
    ConfigurationError,
    DimensionMismatchError,
    FoldIndexError,
    SketchIndexError,
    WeightCountMismatchError,
)
from .index import IndexState, ProjectionState, VectorSketchIndex
from .search import ClosestCenter
from .benchmark import benchmark_index, evaluate_agreement, print_benchmark_results
from .weights import ClosestCenterWeights, WeightedVector, WeightSource

__all__ = [
    'SketchParams',
    'ConfigurationError',
    'DimensionMismatchError',
    'FoldIndexError',
    'SketchIndexError',
    'WeightCountMismatchError',
    'IndexState',
    'ProjectionState',
    'VectorSketchIndex',
    'ClosestCenter',
    'ClosestCenterWeights',
    'WeightedVector',
    'WeightSource',
    'benchmark_index',
    'evaluate_agreement',
    'print_benchmark_results',
]
