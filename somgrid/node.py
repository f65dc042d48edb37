"""
Grid node holding a coordinate vector and a weight vector
"""

from typing import Optional, Sequence, Union

import numpy as np

from .exceptions import ConfigurationError, UninitializedStateError

Bounds = Union[float, Sequence[float], np.ndarray]


def _resolve_bounds(depth: int, lower_bound: Bounds, upper_bound: Bounds):
    """Broadcast scalar or per-index bounds to arrays of length depth"""
    lower = np.asarray(lower_bound, dtype=np.float64)
    upper = np.asarray(upper_bound, dtype=np.float64)

    for name, bound in (("lower", lower), ("upper", upper)):
        if bound.ndim > 1 or (bound.ndim == 1 and len(bound) != depth):
            raise ConfigurationError(
                f"Expected scalar or {depth} {name} bounds, got shape {bound.shape}"
            )

    lower = np.broadcast_to(lower, (depth,))
    upper = np.broadcast_to(upper, (depth,))
    if np.any(lower > upper):
        raise ConfigurationError("Lower weight bounds must not exceed upper bounds")
    return lower, upper


class Node:
    """
    A single map unit: its position on the grid and its weight vector

    Coordinates are set once and stored read-only. Weights are mutated in
    place during training; when the node belongs to a Grid they are a row
    view into the grid's weight matrix.
    """

    __slots__ = ("_coords", "_weights")

    def __init__(self, coords: Optional[Sequence[float]] = None):
        self._coords = None
        self._weights = None
        if coords is not None:
            self.init_coords(coords)

    @classmethod
    def create(
        cls,
        coords: Sequence[float],
        depth: int,
        rng: np.random.RandomState,
        lower_bound: Bounds = 0.0,
        upper_bound: Bounds = 1.0,
    ) -> "Node":
        """Build a node with both coordinates and weights initialized"""
        node = cls(coords)
        node.init_weights(depth, rng, lower_bound, upper_bound)
        return node

    @property
    def coords(self) -> np.ndarray:
        if self._coords is None:
            raise UninitializedStateError("Node coordinates have not been set")
        return self._coords

    @property
    def weights(self) -> np.ndarray:
        if self._weights is None:
            raise UninitializedStateError("Node weights have not been initialized")
        return self._weights

    @property
    def is_initialized(self) -> bool:
        return self._coords is not None and self._weights is not None

    def init_coords(self, coords: Sequence[float]) -> None:
        """Set the coordinate vector; coordinates never change afterwards"""
        if self._coords is not None:
            raise ConfigurationError("Node coordinates are already set")
        coords = np.array(coords, dtype=np.float64)
        if coords.ndim != 1 or coords.size == 0:
            raise ConfigurationError(f"Coordinates must be a 1D vector, got {coords!r}")
        coords.setflags(write=False)
        self._coords = coords

    def init_weights(
        self,
        depth: int,
        rng: np.random.RandomState,
        lower_bound: Bounds = 0.0,
        upper_bound: Bounds = 1.0,
        out: Optional[np.ndarray] = None,
    ) -> None:
        """
        Draw weights uniformly from [lower_bound, upper_bound)

        Args:
            depth: Feature depth (length of the weight vector)
            rng: Random source to draw from
            lower_bound: Scalar or per-index lower bounds
            upper_bound: Scalar or per-index upper bounds; equal bounds give
                a constant fill
            out: Storage row to write into and keep as the weight vector
        """
        if depth < 1:
            raise ConfigurationError(f"Feature depth must be positive, got {depth}")
        lower, upper = _resolve_bounds(depth, lower_bound, upper_bound)
        values = rng.uniform(lower, upper, size=depth)
        self._store(values, out)

    def set_weights(self, values: Sequence[float], out: Optional[np.ndarray] = None) -> None:
        """Seed the weight vector explicitly"""
        values = np.asarray(values, dtype=np.float64)
        if values.ndim != 1 or values.size == 0:
            raise ConfigurationError(f"Weights must be a 1D vector, got shape {values.shape}")
        self._store(values, out)

    def _store(self, values: np.ndarray, out: Optional[np.ndarray]) -> None:
        if out is None and self._weights is not None:
            # Rewrite in place so a grid's storage row stays shared
            if self._weights.shape != values.shape:
                raise ConfigurationError(
                    f"Weight depth is fixed at {self._weights.shape[0]}, got {values.shape[0]}"
                )
            self._weights[...] = values
            return
        if out is None:
            self._weights = np.array(values, dtype=np.float64)
            return
        if out.shape != values.shape:
            raise ConfigurationError(
                f"Weight storage of shape {out.shape} cannot hold {values.shape}"
            )
        out[...] = values
        self._weights = out

    def __repr__(self) -> str:
        coords = None if self._coords is None else self._coords.tolist()
        weights = None if self._weights is None else self._weights.tolist()
        return f"Node(coords={coords}, weights={weights})"
