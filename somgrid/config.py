"""
Configuration classes and enums for SOM
"""

from enum import Enum
from dataclasses import dataclass, asdict
from typing import Optional, Tuple, Dict

from .exceptions import ConfigurationError


class Topology(Enum):
    """Rule mapping a node's multi-index to its grid coordinate"""

    SQUARE = "square"
    HEXAGONAL = "hexagonal"
    HEXAGONAL_ALTERNATING = "hexagonal_alternating"
    CUBE = "cube"

    @property
    def n_dims(self) -> int:
        """Number of grid dimensions (and coordinate length) of this topology"""
        return 3 if self is Topology.CUBE else 2


class DistanceMetric(Enum):
    """Distance functions selectable by name"""

    EUCLIDEAN = "euclidean"
    SQUARED = "squared"
    MIN_NORM = "min_norm"
    MAX_NORM = "max_norm"
    SCALAR_PRODUCT = "scalar_product"
    TOROIDAL = "toroidal"


@dataclass
class SOMConfig:
    """Centralized configuration management for grid and SOM parameters"""

    # Grid
    dims: Tuple[int, ...]
    topology: Topology = Topology.SQUARE
    feature_depth: Optional[int] = None

    # Distance functions: feature space (BMU search) and grid space
    distance_metric: DistanceMetric = DistanceMetric.SQUARED
    neighborhood_metric: DistanceMetric = DistanceMetric.EUCLIDEAN
    wrap: Optional[Tuple[bool, ...]] = None  # toroidal wrap per dimension

    # Schedules
    initial_alpha: float = 1.0
    min_alpha: float = 0.0
    sigma_factor: float = 1.0
    min_sigma: float = 0.5
    neighborhood_factor: float = -0.5

    # Weight initialization bounds
    weight_bounds: Tuple[float, float] = (0.0, 1.0)

    # Training
    epochs: int = 10
    shuffle: bool = True

    # Reproducibility
    seed: Optional[int] = None

    def __post_init__(self):
        """Normalize sequences and reject malformed parameters early"""
        try:
            self.topology = Topology(self.topology)
            self.distance_metric = DistanceMetric(self.distance_metric)
            self.neighborhood_metric = DistanceMetric(self.neighborhood_metric)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        self.dims = tuple(int(d) for d in self.dims)
        if self.wrap is not None:
            self.wrap = tuple(bool(w) for w in self.wrap)
        self.weight_bounds = tuple(float(b) for b in self.weight_bounds)

        if len(self.dims) != self.topology.n_dims:
            raise ConfigurationError(
                f"Topology {self.topology.value} expects {self.topology.n_dims} "
                f"dimensions, got {len(self.dims)}"
            )
        if any(d < 1 for d in self.dims):
            raise ConfigurationError(f"Grid dimensions must be positive, got {self.dims}")
        if self.topology == Topology.HEXAGONAL_ALTERNATING and self.dims[1] < 2:
            raise ConfigurationError("Alternating hexagonal grids need a width of at least 2")
        if self.wrap is not None and len(self.wrap) != len(self.dims):
            raise ConfigurationError(
                f"Expected {len(self.dims)} wrap flags, got {len(self.wrap)}"
            )
        if self.feature_depth is not None and self.feature_depth < 1:
            raise ConfigurationError(
                f"Feature depth must be positive, got {self.feature_depth}"
            )
        if len(self.weight_bounds) != 2 or self.weight_bounds[0] > self.weight_bounds[1]:
            raise ConfigurationError(f"Invalid weight bounds: {self.weight_bounds}")
        if self.distance_metric == DistanceMetric.TOROIDAL:
            raise ConfigurationError(
                "The toroidal metric applies to grid coordinates only"
            )
        if self.neighborhood_factor > 0:
            raise ConfigurationError("Neighborhood factor must not be positive")
        if self.epochs < 0:
            raise ConfigurationError(f"Epochs must be non-negative, got {self.epochs}")

    def to_dict(self) -> Dict:
        """Convert config to dictionary for serialization"""
        config_dict = asdict(self)
        # Convert enums to strings and tuples to lists
        for key, value in config_dict.items():
            if isinstance(value, Enum):
                config_dict[key] = value.value
            elif isinstance(value, tuple):
                config_dict[key] = list(value)
        return config_dict

    @classmethod
    def from_dict(cls, config_dict: Dict) -> "SOMConfig":
        """Create config from dictionary"""
        config_dict = dict(config_dict)
        # Convert string back to enums
        enum_fields = {
            "topology": Topology,
            "distance_metric": DistanceMetric,
            "neighborhood_metric": DistanceMetric,
        }
        for field_name, enum_class in enum_fields.items():
            if field_name in config_dict and isinstance(config_dict[field_name], str):
                try:
                    config_dict[field_name] = enum_class(config_dict[field_name])
                except ValueError as e:
                    raise ConfigurationError(str(e)) from e
        return cls(**config_dict)
