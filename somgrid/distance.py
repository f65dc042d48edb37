"""Distance calculation utilities for SOM.

Every function reduces along the last axis, so a matrix of node vectors
against a single point yields one distance per node. Arguments are always
passed as (node vector(s), sample or point); scalar product and toroidal
distance are not guaranteed to be symmetric.
"""

from typing import Callable, Optional, Sequence, Union

import numpy as np

from .config import DistanceMetric
from .exceptions import ConfigurationError

DistanceFunction = Callable[[np.ndarray, np.ndarray], Union[float, np.ndarray]]


class DistanceCalculator:
    """Calculate distances using different metrics."""

    @staticmethod
    def euclidean(a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Calculate Euclidean distance."""
        return np.linalg.norm(np.subtract(a, b), axis=-1)

    @staticmethod
    def squared(a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Calculate the sum of squared differences (Euclidean without sqrt)."""
        diff = np.subtract(a, b)
        return np.sum(diff * diff, axis=-1)

    @staticmethod
    def min_norm(a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Calculate the smallest absolute per-index difference."""
        return np.min(np.abs(np.subtract(a, b)), axis=-1)

    @staticmethod
    def max_norm(a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Calculate the largest absolute per-index difference (Chebyshev)."""
        return np.max(np.abs(np.subtract(a, b)), axis=-1)

    @staticmethod
    def scalar_product(a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Calculate the sum of elementwise products."""
        return np.sum(np.multiply(a, b), axis=-1)

    @staticmethod
    def toroidal(
        dims: Sequence[int], wrap: Optional[Sequence[bool]] = None
    ) -> DistanceFunction:
        """
        Create a Euclidean distance that wraps around the given dimensions

        Args:
            dims: Size of every dimension (the modulus to wrap around)
            wrap: Per-dimension flags, wrapping only where True (all by default)

        Returns:
            Distance function over vectors of length len(dims)
        """
        dims = np.asarray(dims, dtype=np.float64)
        if wrap is None:
            wrap = np.ones(len(dims), dtype=bool)
        else:
            wrap = np.asarray(wrap, dtype=bool)
        if wrap.shape != dims.shape:
            raise ConfigurationError(
                f"Expected {len(dims)} wrap flags, got {len(wrap)}"
            )

        def distance(a: np.ndarray, b: np.ndarray) -> np.ndarray:
            diff = np.abs(np.subtract(a, b))
            if diff.shape[-1] != len(dims):
                raise ConfigurationError(
                    f"Toroidal distance over {len(dims)} dimensions got vectors "
                    f"of length {diff.shape[-1]}"
                )
            diff = np.where(wrap, np.minimum(diff, dims - diff), diff)
            return np.sqrt(np.sum(diff * diff, axis=-1))

        return distance


_METRIC_MAP = {
    DistanceMetric.EUCLIDEAN: DistanceCalculator.euclidean,
    DistanceMetric.SQUARED: DistanceCalculator.squared,
    DistanceMetric.MIN_NORM: DistanceCalculator.min_norm,
    DistanceMetric.MAX_NORM: DistanceCalculator.max_norm,
    DistanceMetric.SCALAR_PRODUCT: DistanceCalculator.scalar_product,
}


def get_distance_function(
    metric: Union[DistanceMetric, str, DistanceFunction],
    dims: Optional[Sequence[int]] = None,
    wrap: Optional[Sequence[bool]] = None,
) -> DistanceFunction:
    """Resolve a metric (enum, enum value or callable) to a distance function"""
    if callable(metric):
        return metric

    try:
        metric = DistanceMetric(metric)
    except ValueError as e:
        raise ConfigurationError(f"Unknown distance metric: {metric!r}") from e

    if metric == DistanceMetric.TOROIDAL:
        if dims is None:
            raise ConfigurationError("Toroidal distance requires grid dimensions")
        return DistanceCalculator.toroidal(dims, wrap)
    return _METRIC_MAP[metric]
