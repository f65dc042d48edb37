"""Linear rescaling of feature values between ranges."""

from typing import Sequence, Union

import numpy as np

from .exceptions import ConfigurationError

RangeBound = Union[float, Sequence[float], np.ndarray]


class DataNormalizer:
    """
    Map values from a data range onto a target range, per feature

    For instance DataNormalizer(0, 255) scales 8-bit colour channels to
    [0, 1]. Features whose data range is empty map to the centre of the
    target range.
    """

    def __init__(
        self,
        data_min: RangeBound,
        data_max: RangeBound,
        norm_min: float = 0.0,
        norm_max: float = 1.0,
    ):
        self.data_min = np.asarray(data_min, dtype=np.float64)
        self.data_max = np.asarray(data_max, dtype=np.float64)
        if self.data_min.shape != self.data_max.shape:
            raise ConfigurationError("Data range bounds must have the same shape")
        if np.any(self.data_min > self.data_max):
            raise ConfigurationError("Data range minimum exceeds its maximum")
        if norm_min > norm_max:
            raise ConfigurationError("Target range minimum exceeds its maximum")

        self.norm_min = float(norm_min)
        self.norm_max = float(norm_max)

    @classmethod
    def from_data(
        cls, samples, norm_min: float = 0.0, norm_max: float = 1.0
    ) -> "DataNormalizer":
        """Derive per-feature data ranges from the samples themselves"""
        samples = np.asarray(samples, dtype=np.float64)
        if samples.size == 0:
            raise ConfigurationError("Cannot derive a data range from no samples")
        if not np.all(np.isfinite(samples)):
            raise ConfigurationError("Input data contains NaN or infinite values")
        return cls(samples.min(axis=0), samples.max(axis=0), norm_min, norm_max)

    def normalize(self, values) -> np.ndarray:
        """Rescale values (a sample or an array of samples) to the target range"""
        values = np.asarray(values, dtype=np.float64)
        data_range = self.data_max - self.data_min
        norm_range = self.norm_max - self.norm_min

        # Handle division by zero for constant features
        safe_range = np.where(data_range == 0, 1.0, data_range)
        scaled = (values - self.data_min) / safe_range * norm_range + self.norm_min
        return np.where(data_range == 0, self.norm_min + norm_range / 2, scaled)
