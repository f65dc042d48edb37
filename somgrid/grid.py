"""
Grid of SOM nodes and the topologies that place them

The first index moves down (rows) and the second moves right (columns); the
cube adds a third, depth index. Nodes are stored flat in row-major order
(depth-major for the cube) and addressed by multi-index through node().
"""

from typing import Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np

from .config import DistanceMetric, Topology
from .distance import DistanceFunction, get_distance_function
from .exceptions import ConfigurationError, IndexOutOfRangeError, UninitializedStateError
from .node import Bounds, Node
from .observability import BMU_TIES

HEX_SCALE = np.sqrt(3.0) / 2.0  # Row spacing for equilateral triangles
HEX_ADDEND = 0.5  # Column offset of odd rows

Metric = Union[DistanceMetric, str, DistanceFunction]
Seed = Union[None, int, np.random.RandomState]
Layout = Iterator[Tuple[Tuple[int, ...], Tuple[float, ...]]]


class PredictionResult(NamedTuple):
    """Best-matching node of a sample and the sample's distance to it"""

    node_id: int
    distance: float


def check_random_state(seed: Seed) -> np.random.RandomState:
    """Turn None, an int seed or an existing RandomState into a RandomState"""
    if isinstance(seed, np.random.RandomState):
        return seed
    return np.random.RandomState(seed)


def _square_layout(height: int, width: int) -> Layout:
    for i in range(height):
        for j in range(width):
            yield (i, j), (float(i), float(j))


def _hexagonal_layout(height: int, width: int) -> Layout:
    """
    Every other row shifted by half a unit::

        x x x x
         x x x x
        x x x x
    """
    for i in range(height):
        for j in range(width):
            yield (i, j), (i * HEX_SCALE, j + HEX_ADDEND * (i % 2))


def _hexagonal_alternating_layout(height: int, width: int) -> Layout:
    """
    Hexagonal layout where odd rows are one node shorter::

        x x x x
         x x x
        x x x x
    """
    for i in range(height):
        row_width = width if i % 2 == 0 else width - 1
        for j in range(row_width):
            yield (i, j), (i * HEX_SCALE, j + HEX_ADDEND * (i % 2))


def _cube_layout(height: int, width: int, depth: int) -> Layout:
    for i in range(height):
        for j in range(width):
            for k in range(depth):
                yield (i, j, k), (float(i), float(j), float(k))


_LAYOUTS = {
    Topology.SQUARE: _square_layout,
    Topology.HEXAGONAL: _hexagonal_layout,
    Topology.HEXAGONAL_ALTERNATING: _hexagonal_alternating_layout,
    Topology.CUBE: _cube_layout,
}


class Grid:
    """
    Fixed-size collection of nodes laid out by a topology

    The grid owns two distance functions: distance_function compares node
    weights with samples (feature space, used for the BMU search) and
    neighborhood_distance_function compares node coordinates (grid space,
    used to scale updates around the BMU). It also owns the seeded random
    source used to break BMU ties.
    """

    def __init__(
        self,
        topology: Union[Topology, str],
        dims: Sequence[int],
        distance_function: Metric = DistanceMetric.SQUARED,
        neighborhood_distance_function: Metric = DistanceMetric.EUCLIDEAN,
        seed: Seed = None,
        feature_depth: Optional[int] = None,
        lower_bound: Bounds = 0.0,
        upper_bound: Bounds = 1.0,
        wrap: Optional[Sequence[bool]] = None,
    ):
        """
        Create the grid and its node coordinates

        Args:
            topology: Coordinate rule for the nodes
            dims: Grid size, (height, width) or (height, width, depth) for a cube
            distance_function: Feature-space metric for the BMU search
            neighborhood_distance_function: Grid-space metric to the BMU
            seed: Seed or RandomState for weight init and tie-breaks
            feature_depth: Initialize weights eagerly with this depth if given
            lower_bound: Lower weight bound(s) for eager initialization
            upper_bound: Upper weight bound(s) for eager initialization
            wrap: Per-dimension wrap flags for a toroidal neighborhood metric
        """
        try:
            self.topology = Topology(topology)
        except ValueError as e:
            raise ConfigurationError(f"Unknown topology: {topology!r}") from e

        self.dims = tuple(int(d) for d in dims)
        if len(self.dims) != self.topology.n_dims:
            raise ConfigurationError(
                f"Topology {self.topology.value} expects {self.topology.n_dims} "
                f"dimensions, got {len(self.dims)}"
            )
        if any(d < 1 for d in self.dims):
            raise ConfigurationError(f"Grid dimensions must be positive, got {self.dims}")
        if self.topology == Topology.HEXAGONAL_ALTERNATING and self.dims[1] < 2:
            raise ConfigurationError("Alternating hexagonal grids need a width of at least 2")

        if distance_function == DistanceMetric.TOROIDAL or distance_function == "toroidal":
            raise ConfigurationError("The toroidal metric applies to grid coordinates only")
        self.distance_function = get_distance_function(distance_function)
        self.neighborhood_distance_function = get_distance_function(
            neighborhood_distance_function, dims=self.extent, wrap=wrap
        )
        self.rng = check_random_state(seed)

        self.nodes: List[Node] = []
        self._positions: Dict[Tuple[int, ...], int] = {}
        for idx, coords in _LAYOUTS[self.topology](*self.dims):
            self._positions[idx] = len(self.nodes)
            self.nodes.append(Node(coords))

        self._coords = np.array([node.coords for node in self.nodes], dtype=np.float64)
        self._coords.setflags(write=False)
        self._weights: Optional[np.ndarray] = None

        if feature_depth is not None:
            self.initialize_weights(feature_depth, lower_bound, upper_bound)

    @classmethod
    def square(cls, height: int, width: int, **kwargs) -> "Grid":
        """Regular square grid with unit spacing"""
        return cls(Topology.SQUARE, (height, width), **kwargs)

    @classmethod
    def hexagonal(cls, height: int, width: int, **kwargs) -> "Grid":
        """Regular hexagonal grid, six equidistant neighbors per inner node"""
        return cls(Topology.HEXAGONAL, (height, width), **kwargs)

    @classmethod
    def hexagonal_alternating(cls, height: int, width: int, **kwargs) -> "Grid":
        """Hexagonal grid whose odd rows hold width - 1 nodes"""
        return cls(Topology.HEXAGONAL_ALTERNATING, (height, width), **kwargs)

    @classmethod
    def cube(cls, height: int, width: int, depth: int, **kwargs) -> "Grid":
        """Regular cuboid grid with unit spacing"""
        return cls(Topology.CUBE, (height, width, depth), **kwargs)

    @property
    def extent(self) -> Tuple[float, ...]:
        """Period of the node coordinates along every grid dimension"""
        if self.topology in (Topology.HEXAGONAL, Topology.HEXAGONAL_ALTERNATING):
            return (self.dims[0] * HEX_SCALE, float(self.dims[1]))
        return tuple(float(d) for d in self.dims)

    @property
    def size(self) -> int:
        return len(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def coords(self) -> np.ndarray:
        """Read-only (n_nodes, n_dims) matrix of node coordinates"""
        return self._coords

    @property
    def weights(self) -> np.ndarray:
        """Live (n_nodes, feature_depth) weight matrix shared with the nodes"""
        if self._weights is None:
            raise UninitializedStateError("Grid weights have not been initialized")
        return self._weights

    @property
    def feature_depth(self) -> Optional[int]:
        return None if self._weights is None else self._weights.shape[1]

    @property
    def is_initialized(self) -> bool:
        return self._weights is not None

    @property
    def row_lengths(self) -> List[int]:
        """Number of nodes in every innermost row, in storage order"""
        if self.topology == Topology.HEXAGONAL_ALTERNATING:
            height, width = self.dims
            return [width if i % 2 == 0 else width - 1 for i in range(height)]
        return [self.dims[-1]] * int(np.prod(self.dims[:-1]))

    @property
    def node_grid(self) -> list:
        """Nodes nested by multi-index (rows may differ in length)"""
        rows = []
        start = 0
        for length in self.row_lengths:
            rows.append(self.nodes[start:start + length])
            start += length
        if self.topology == Topology.CUBE:
            width = self.dims[1]
            return [rows[i:i + width] for i in range(0, len(rows), width)]
        return rows

    @property
    def indices(self) -> List[Tuple[int, ...]]:
        """Multi-index of every node, in storage order"""
        return list(self._positions)

    def index_of(self, *idx: int) -> int:
        """Flat position of the node at the given multi-index"""
        if len(idx) != len(self.dims):
            raise IndexOutOfRangeError(
                f"Expected {len(self.dims)} indices, got {len(idx)}"
            )
        try:
            return self._positions[tuple(int(i) for i in idx)]
        except KeyError:
            raise IndexOutOfRangeError(
                f"Index {idx} is outside the {self.topology.value} grid {self.dims}"
            ) from None

    def node(self, *idx: int) -> Node:
        """Node at the given multi-index"""
        return self.nodes[self.index_of(*idx)]

    def reshape(self, values: np.ndarray) -> Union[np.ndarray, List[np.ndarray]]:
        """
        Arrange per-node values by the grid's multi-index

        Args:
            values: Array whose first axis runs over the nodes in flat order

        Returns:
            Array of shape dims + trailing shape, or a list of per-row arrays
            for the jagged alternating hexagonal grid
        """
        values = np.asarray(values)
        if values.shape[0] != self.size:
            raise ConfigurationError(
                f"Expected values for {self.size} nodes, got {values.shape[0]}"
            )
        if self.topology == Topology.HEXAGONAL_ALTERNATING:
            return np.split(values, np.cumsum(self.row_lengths)[:-1])
        return values.reshape(self.dims + values.shape[1:])

    def initialize_weights(
        self,
        depth: int,
        lower_bound: Bounds = 0.0,
        upper_bound: Bounds = 1.0,
        rng: Seed = None,
    ) -> "Grid":
        """
        Initialize the weights of every node uniformly within bounds

        Args:
            depth: Feature depth (length of every weight vector)
            lower_bound: Scalar or per-index lower bounds
            upper_bound: Scalar or per-index upper bounds
            rng: Alternative random source (the grid's own by default)

        Returns:
            self for method chaining
        """
        rng = self.rng if rng is None else check_random_state(rng)
        if depth < 1:
            raise ConfigurationError(f"Feature depth must be positive, got {depth}")

        weights = np.empty((self.size, depth), dtype=np.float64)
        for i, node in enumerate(self.nodes):
            node.init_weights(depth, rng, lower_bound, upper_bound, out=weights[i])
        self._weights = weights
        return self

    def set_weights(self, weights: np.ndarray) -> "Grid":
        """Seed every node's weights from an (n_nodes, depth) matrix"""
        weights = np.array(weights, dtype=np.float64)
        if weights.ndim != 2 or weights.shape[0] != self.size:
            raise ConfigurationError(
                f"Expected weights of shape ({self.size}, depth), got {weights.shape}"
            )
        for i, node in enumerate(self.nodes):
            node.set_weights(weights[i], out=weights[i])
        self._weights = weights
        return self

    def check_sample(self, sample) -> np.ndarray:
        """Validate one sample against the node feature depth"""
        sample = np.asarray(sample, dtype=np.float64)
        depth = self.weights.shape[1]
        if sample.shape != (depth,):
            raise ConfigurationError(
                f"Expected a sample with {depth} features, got shape {sample.shape}"
            )
        return sample

    def find_best_node_id_and_score(self, sample) -> PredictionResult:
        """
        Find the node whose weights are closest to the sample

        Ties at the minimum score are broken uniformly at random with the
        grid's random source.

        Args:
            sample: Feature vector of length feature_depth

        Returns:
            Index of the best node and its score under distance_function
        """
        sample = self.check_sample(sample)
        scores = np.asarray(self.distance_function(self._weights, sample), dtype=np.float64)
        if scores.shape != (self.size,):
            raise ConfigurationError(
                "Distance function must reduce along the last axis, "
                f"got scores of shape {scores.shape}"
            )

        best_score = scores.min()
        if np.isnan(best_score):
            raise ConfigurationError("Distance function returned NaN")

        tied = np.flatnonzero(scores == best_score)
        if len(tied) > 1:
            BMU_TIES.inc()
        node_id = int(tied[self.rng.randint(len(tied))])
        return PredictionResult(node_id, float(best_score))

    def find_best_node(self, sample) -> Node:
        """Best-matching node for the sample"""
        return self.nodes[self.find_best_node_id_and_score(sample).node_id]

    def calc_node_distances_to_point(self, point) -> np.ndarray:
        """Grid-space distance of every node coordinate to a point"""
        point = np.asarray(point, dtype=np.float64)
        if point.shape != (len(self.dims),):
            raise ConfigurationError(
                f"Expected a point with {len(self.dims)} coordinates, got shape {point.shape}"
            )
        return np.asarray(
            self.neighborhood_distance_function(self._coords, point), dtype=np.float64
        )

    def __repr__(self) -> str:
        return (
            f"Grid(topology={self.topology.value}, dims={self.dims}, "
            f"nodes={self.size}, feature_depth={self.feature_depth})"
        )
