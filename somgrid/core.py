"""
Core SOM implementation
"""

import time
from datetime import datetime
from typing import Dict, List, Optional, Union

import numpy as np
import structlog
from tqdm import tqdm

from .callbacks import Callback
from .config import SOMConfig
from .exceptions import ConfigurationError, UninitializedStateError
from .functions import (
    NeighborhoodFunction,
    TimeFunction,
    default_sigma_function,
    exponential_decreasing,
    linear_decreasing,
)
from .grid import Grid, PredictionResult, Seed, check_random_state
from .observability import log_prediction_metrics, log_training_metrics
from .visualization import SOMVisualizer

logger = structlog.get_logger(__name__)


def _as_float_array(data) -> np.ndarray:
    try:
        return np.asarray(data, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Input data is not a numeric array: {e}") from e


class SOM:
    """
    Self-Organizing Map trained on a Grid

    Every training step finds the best-matching node of a sample, measures
    the grid distance of all nodes to it and pulls each node's weights toward
    the sample by neighborhood_function(distance, sigma, alpha). Alpha and
    sigma follow time functions of the global iteration counter.
    """

    ADJACENCY_TOLERANCE = 1.1  # Unit spacing plus tolerance for neighbors

    def __init__(
        self,
        grid: Grid,
        neighborhood_function: Optional[NeighborhoodFunction] = None,
        alpha_function: Optional[TimeFunction] = None,
        sigma_function: Optional[TimeFunction] = None,
        seed: Seed = None,
        verbose: bool = False,
    ):
        """
        Initialize the SOM around a grid

        Args:
            grid: Grid whose node weights are trained in place
            neighborhood_function: Update factor from (distance, sigma, alpha)
            alpha_function: Learning rate schedule (linear decreasing from 1.0)
            sigma_function: Neighborhood radius schedule (scaled by grid size)
            seed: Seed or RandomState for shuffling the training order
            verbose: Whether to show a progress bar while training
        """
        self.grid = grid
        self.neighborhood_function = neighborhood_function or exponential_decreasing()
        self.alpha_function = alpha_function or linear_decreasing()
        self.sigma_function = sigma_function or default_sigma_function(grid.dims)
        self.rng = check_random_state(seed)
        self.verbose = verbose
        self.config: Optional[SOMConfig] = None

        self.metadata = {
            "creation_time": datetime.now().isoformat(),
            "training_history": [],
            "total_epochs": 0,
            "total_samples_seen": 0,
            "total_iterations": 0,
        }

        self.callbacks: List[Callback] = []

        # Control flag for early stopping
        self.stop_training = False

    @classmethod
    def from_config(cls, config: SOMConfig, verbose: bool = False) -> "SOM":
        """Build grid and SOM from one configuration, sharing one random source"""
        rng = np.random.RandomState(config.seed)
        grid = Grid(
            config.topology,
            config.dims,
            distance_function=config.distance_metric,
            neighborhood_distance_function=config.neighborhood_metric,
            seed=rng,
            feature_depth=config.feature_depth,
            lower_bound=config.weight_bounds[0],
            upper_bound=config.weight_bounds[1],
            wrap=config.wrap,
        )
        som = cls(
            grid,
            neighborhood_function=exponential_decreasing(config.neighborhood_factor),
            alpha_function=linear_decreasing(config.initial_alpha, config.min_alpha),
            sigma_function=default_sigma_function(
                grid.dims, config.sigma_factor, config.min_sigma
            ),
            seed=rng,
            verbose=verbose,
        )
        som.config = config
        return som

    def _validate_data(self, data) -> np.ndarray:
        """Check that samples form a finite 2D array matching the grid depth"""
        data = _as_float_array(data)

        if data.ndim != 2:
            raise ConfigurationError(f"Input data must be 2D array, got {data.ndim}D")

        if data.shape[1] == 0:
            raise ConfigurationError("Input data has no features")

        depth = self.grid.feature_depth
        if depth is not None and data.shape[1] != depth:
            raise ConfigurationError(f"Expected {depth} features, got {data.shape[1]}")

        if not np.all(np.isfinite(data)):
            raise ConfigurationError("Input data contains NaN or infinite values")

        return data

    def step(self, sample, t: int, T: int) -> PredictionResult:
        """
        Perform a single training step for one sample

        Args:
            sample: Feature vector of the sample
            t: Current (global) iteration
            T: Total number of iterations

        Returns:
            Best-matching node of the sample before the update
        """
        sample = self.grid.check_sample(sample)
        alpha = self.alpha_function(t, T)
        sigma = self.sigma_function(t, T)

        bmu = self.grid.find_best_node_id_and_score(sample)
        distances = self.grid.calc_node_distances_to_point(self.grid.coords[bmu.node_id])

        delta = np.asarray(
            self.neighborhood_function(distances, sigma, alpha), dtype=np.float64
        )
        delta = np.broadcast_to(delta, (self.grid.size,))

        weights = self.grid.weights
        weights += (sample - weights) * delta[:, np.newaxis]
        return bmu

    def train(
        self,
        data,
        epochs: int,
        shuffle: bool = True,
        callbacks: Optional[List[Callback]] = None,
    ) -> "SOM":
        """
        Train the SOM on data

        The iteration counter runs globally over all epochs, from 0 to
        epochs * len(data) - 1, so the alpha and sigma schedules decay over
        the whole run. Calling train again continues from the current weights.

        Args:
            data: Samples of shape (n_samples, n_features)
            epochs: Number of passes over the data
            shuffle: Whether to visit the samples in a random order every epoch
            callbacks: List of callback objects

        Returns:
            self for method chaining
        """
        if epochs < 0:
            raise ConfigurationError(f"Epochs must be non-negative, got {epochs}")

        if epochs == 0 or len(data) == 0:
            logger.debug("Nothing to train", epochs=epochs, n_samples=len(data))
            return self

        data = self._validate_data(data)

        # Initialize weights from the data width if the grid has none yet
        if not self.grid.is_initialized:
            self.grid.initialize_weights(data.shape[1])

        n_samples = len(data)
        max_iter = epochs * n_samples
        progress_interval = max(max_iter // 100, 1)

        self.callbacks = callbacks or []
        self.stop_training = False
        for callback in self.callbacks:
            callback.on_training_begin(self)

        logger.info(
            "Training started",
            topology=self.grid.topology.value,
            dims=self.grid.dims,
            n_samples=n_samples,
            epochs=epochs,
            max_iterations=max_iter,
        )
        start_time = time.time()

        t = 0
        epochs_completed = 0
        progress = tqdm(total=max_iter, desc="Training SOM", disable=not self.verbose)
        try:
            for epoch in range(epochs):
                for callback in self.callbacks:
                    callback.on_epoch_begin(epoch, self)

                if self.stop_training:
                    logger.info("Training stopped", epoch=epoch, iteration=t)
                    break

                order = self.rng.permutation(n_samples) if shuffle else range(n_samples)

                total_score = 0.0
                for i in order:
                    total_score += self.step(data[i], t, max_iter).distance
                    t += 1
                    progress.update(1)

                    if t % progress_interval == 0:
                        logger.debug(
                            "Training progress",
                            percent=100 * t // max_iter,
                            iteration=t,
                            max_iterations=max_iter,
                        )

                epoch_metrics = {
                    "qe": total_score / n_samples,
                    "alpha": self.alpha_function(t - 1, max_iter),
                    "sigma": self.sigma_function(t - 1, max_iter),
                }
                if self.verbose:
                    progress.set_postfix(
                        {
                            "QE": f"{epoch_metrics['qe']:.4f}",
                            "σ": f"{epoch_metrics['sigma']:.3f}",
                            "α": f"{epoch_metrics['alpha']:.4f}",
                        }
                    )

                self.metadata["training_history"].append(
                    {"epoch": self.metadata["total_epochs"] + epoch, **epoch_metrics}
                )

                for callback in self.callbacks:
                    callback.on_epoch_end(epoch, self, epoch_metrics)

                epochs_completed += 1
        finally:
            progress.close()

        duration = time.time() - start_time

        for callback in self.callbacks:
            callback.on_training_end(self)

        self.metadata["total_epochs"] += epochs_completed
        self.metadata["total_samples_seen"] += n_samples * epochs_completed
        self.metadata["total_iterations"] += t
        self.metadata["last_training"] = datetime.now().isoformat()
        log_training_metrics(self.grid.topology.value, duration, t)

        logger.info(
            "Training completed",
            epochs_completed=epochs_completed,
            iterations=t,
            duration_seconds=duration,
        )
        return self

    def _check_trained(self):
        """Check that the grid has weights, raise informative error if not"""
        if not self.grid.is_initialized:
            raise UninitializedStateError(
                "SOM has not been trained yet. Call train() first."
            )

    def predict(self, data) -> Union[PredictionResult, List[PredictionResult]]:
        """
        Find the best-matching node for one sample or for every sample

        Args:
            data: A single sample of shape (n_features,) or samples of shape
                (n_samples, n_features)

        Returns:
            PredictionResult for a single sample, a list of them otherwise
        """
        self._check_trained()
        data = _as_float_array(data)

        if data.ndim == 1:
            if not np.all(np.isfinite(data)):
                raise ConfigurationError("Input data contains NaN or infinite values")
            log_prediction_metrics()
            return self.grid.find_best_node_id_and_score(data)

        data = self._validate_data(data)
        log_prediction_metrics(len(data))
        return [self.grid.find_best_node_id_and_score(sample) for sample in data]

    def _scores(self, data) -> np.ndarray:
        """Feature-space distance of every sample to every node"""
        self._check_trained()
        data = self._validate_data(data)
        weights = self.grid.weights
        return np.array(
            [self.grid.distance_function(weights, sample) for sample in data],
            dtype=np.float64,
        ).reshape(len(data), self.grid.size)

    def quantization_error(self, data) -> float:
        """Mean score of every sample against its best-matching node"""
        scores = self._scores(data)
        if len(scores) == 0:
            return 0.0
        return float(np.mean(scores.min(axis=1)))

    def topographic_error(self, data) -> float:
        """
        Fraction of samples whose two best nodes are not grid neighbors

        Neighbors are nodes at most one grid unit apart (with tolerance)
        under the grid's neighborhood distance function.
        """
        scores = self._scores(data)
        if self.grid.size < 2 or len(scores) == 0:
            return 0.0

        ranked = np.argsort(scores, axis=1, kind="stable")[:, :2]
        coords = self.grid.coords
        errors = 0
        for first, second in ranked:
            distance = float(
                self.grid.neighborhood_distance_function(coords[first], coords[second])
            )
            if distance > self.ADJACENCY_TOLERANCE:
                errors += 1
        return errors / len(scores)

    def get_weights(self) -> Union[np.ndarray, List[np.ndarray]]:
        """Copy of the weights arranged by the grid topology"""
        self._check_trained()
        return self.grid.reshape(self.grid.weights.copy())

    def get_info(self) -> Dict:
        """Get comprehensive information about the SOM"""
        return {
            "config": self.config.to_dict() if self.config is not None else None,
            "metadata": self.metadata,
            "topology": self.grid.topology.value,
            "shape": self.grid.dims,
            "n_nodes": self.grid.size,
            "n_features": self.grid.feature_depth,
            "total_epochs": self.metadata["total_epochs"],
            "total_samples": self.metadata["total_samples_seen"],
        }

    # Visualization methods using the visualizer
    def visualize_weights(self, show_plot=True, save_path="som_weights.png"):
        """Visualize SOM weights as an image"""
        SOMVisualizer.visualize_weights(self, show_plot, save_path)
        return self

    def plot_training_progress(self, show_plot=True, save_path="training_progress.png"):
        """Plot quantization error, sigma and alpha per epoch"""
        SOMVisualizer.plot_training_progress(self, show_plot, save_path)
        return self
