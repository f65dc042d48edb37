"""
Hooks into the SOM training loop
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from .core import SOM

logger = structlog.get_logger(__name__)


class Callback(ABC):
    """
    Observer of SOM.train

    Subclasses must handle the per-epoch metrics ("qe", "alpha", "sigma");
    the remaining hooks do nothing unless overridden. Setting
    som.stop_training from any hook ends training before the next epoch.
    """

    def on_training_begin(self, som: "SOM") -> None:
        pass

    def on_epoch_begin(self, epoch: int, som: "SOM") -> None:
        pass

    @abstractmethod
    def on_epoch_end(self, epoch: int, som: "SOM", metrics: Dict) -> None:
        """Called after every completed pass over the data"""

    def on_training_end(self, som: "SOM") -> None:
        pass


class EarlyStoppingCallback(Callback):
    """
    Stop training once an epoch metric stops decreasing

    A value counts as an improvement when it undercuts the best value seen so
    far by more than min_delta. After patience epochs without improvement,
    training stops.
    """

    def __init__(self, monitor: str = "qe", patience: int = 10, min_delta: float = 1e-4):
        self.monitor = monitor
        self.patience = patience
        self.min_delta = min_delta
        self.best_value = float("inf")
        self.wait = 0
        self.stopped_epoch: Optional[int] = None

    def on_training_begin(self, som: "SOM") -> None:
        self.best_value = float("inf")
        self.wait = 0
        self.stopped_epoch = None

    def on_epoch_end(self, epoch: int, som: "SOM", metrics: Dict) -> None:
        value = metrics.get(self.monitor)
        if value is None:
            logger.warning("Monitored metric missing", monitor=self.monitor, epoch=epoch)
            return

        if value < self.best_value - self.min_delta:
            self.best_value = value
            self.wait = 0
            return

        self.wait += 1
        if self.wait < self.patience:
            return

        som.stop_training = True
        self.stopped_epoch = epoch
        logger.info(
            "Early stopping triggered",
            epoch=epoch,
            monitor=self.monitor,
            best_value=self.best_value,
            patience=self.patience,
        )
