"""
Neighborhood and time-decay functions for SOM training

Neighborhood functions map (distance, sigma, alpha) to a non-negative update
factor and work elementwise on numpy arrays. Time functions map the current
iteration t and the total number of iterations T to a schedule value and are
used for both alpha (learning rate) and sigma (neighborhood radius).
"""

from typing import Callable, Sequence, Union

import numpy as np

from .exceptions import ConfigurationError

ArrayLike = Union[float, np.ndarray]
NeighborhoodFunction = Callable[[ArrayLike, float, float], ArrayLike]
TimeFunction = Callable[[int, int], float]


def exponential_decreasing(factor: float = -0.5) -> NeighborhoodFunction:
    """
    Gaussian-shaped neighborhood: max(alpha * exp(factor * d^2 / sigma^2), 0)

    The learning rate is applied here and nowhere else during the update, so
    the result equals alpha at distance 0.

    Args:
        factor: Non-positive exponent scale (-0.5 gives the usual Gaussian)

    Returns:
        Neighborhood function
    """
    if factor > 0:
        raise ConfigurationError(f"Neighborhood factor must not be positive, got {factor}")

    def neighborhood(d: ArrayLike, sigma: float, alpha: float) -> ArrayLike:
        d = np.asarray(d, dtype=np.float64)
        if sigma <= 0:
            # Zero radius: only the BMU itself is updated
            return np.where(d == 0, max(alpha, 0.0), 0.0)
        return np.maximum(alpha * np.exp(factor * d * d / (sigma * sigma)), 0.0)

    return neighborhood


def linear_decreasing(factor: float = 1.0, minimum: float = 0.0) -> TimeFunction:
    """
    Linearly decreasing schedule: max(factor * (1 - t / T), minimum)

    Args:
        factor: Value at t = 0
        minimum: Floor the schedule never drops below

    Returns:
        Time function
    """

    def at_time(t: int, T: int) -> float:
        if T <= 0:
            raise ConfigurationError(
                f"Total number of iterations must be positive, got {T}"
            )
        return max(factor * (1.0 - t / T), minimum)

    return at_time


def default_sigma_function(
    dims: Sequence[int], factor: float = 1.0, minimum: float = 0.5
) -> TimeFunction:
    """
    Default sigma schedule, scaled by the Euclidean norm of the grid dimensions

    Args:
        dims: Size of every grid dimension
        factor: Additional scale applied to the dimension norm
        minimum: Smallest radius, in grid units

    Returns:
        Time function
    """
    norm = float(np.linalg.norm(np.asarray(dims, dtype=np.float64)))
    return linear_decreasing(factor * norm, minimum)
