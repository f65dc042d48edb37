"""
Self-Organizing Map (SOM) Package

Trains Kohonen maps on square, hexagonal, alternating hexagonal and cuboid
grids with pluggable distance, neighborhood and time-decay functions.
"""

from .core import SOM
from .config import SOMConfig, Topology, DistanceMetric
from .grid import Grid, PredictionResult
from .node import Node
from .distance import DistanceCalculator, get_distance_function
from .functions import (
    exponential_decreasing,
    linear_decreasing,
    default_sigma_function,
)
from .callbacks import Callback, EarlyStoppingCallback
from .normalize import DataNormalizer
from .exceptions import (
    SOMError,
    UninitializedStateError,
    ConfigurationError,
    IndexOutOfRangeError,
)
from .observability import setup_logging, trace_operation, get_metrics

__version__ = "0.1.0"

__all__ = [
    "SOM",
    "SOMConfig",
    "Topology",
    "DistanceMetric",
    "Grid",
    "PredictionResult",
    "Node",
    "DistanceCalculator",
    "get_distance_function",
    "exponential_decreasing",
    "linear_decreasing",
    "default_sigma_function",
    "Callback",
    "EarlyStoppingCallback",
    "DataNormalizer",
    "SOMError",
    "UninitializedStateError",
    "ConfigurationError",
    "IndexOutOfRangeError",
    "setup_logging",
    "trace_operation",
    "get_metrics",
]
