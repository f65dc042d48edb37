"""
Visualization and export utilities for SOM
"""

import os
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

# Set matplotlib backend to Agg (non-interactive) before importing pyplot
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

from .config import Topology  # noqa: E402

if TYPE_CHECKING:
    from .core import SOM
    from .grid import Grid

_INDEX_NAMES = ("row", "col", "layer")
_PROGRESS_PANELS = (
    ("qe", "Quantization error", "tab:blue"),
    ("sigma", "Neighborhood radius", "tab:red"),
    ("alpha", "Learning rate", "tab:green"),
)


def ensure_parent_dir(save_path: str) -> str:
    """Create the directory a file is about to be written to"""
    parent = os.path.dirname(save_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    return save_path


def weights_frame(grid: "Grid") -> pd.DataFrame:
    """
    Tabulate every node of a grid

    Columns are the node's multi-index (row, col[, layer]), its coordinates
    (x0, x1[, x2]) and its weights (w0 ... w{depth-1}); the frame index is
    the flat node id.
    """
    n_dims = len(grid.dims)
    columns = {}
    indices = np.array(grid.indices, dtype=int).reshape(grid.size, n_dims)
    for d in range(n_dims):
        columns[_INDEX_NAMES[d]] = indices[:, d]
    for d in range(n_dims):
        columns[f"x{d}"] = grid.coords[:, d]
    for f in range(grid.weights.shape[1]):
        columns[f"w{f}"] = grid.weights[:, f]

    frame = pd.DataFrame(columns)
    frame.index.name = "node_id"
    return frame


def node_colors(weights: np.ndarray) -> np.ndarray:
    """
    Map weight vectors to colours

    One feature gives scalar values for a colormap, two features are shown
    as red/green, three or more use the first three as RGB.
    """
    if weights.shape[1] == 1:
        return weights[:, 0]

    colors = np.full((len(weights), 3), 0.5)
    colors[:, : min(3, weights.shape[1])] = weights[:, :3]
    # Normalize to [0, 1] range
    return (colors - colors.min()) / (colors.max() - colors.min() + 1e-8)


class SOMVisualizer:
    """Visualization utilities for SOM analysis"""

    @staticmethod
    def visualize_weights(
        som: "SOM", show_plot: bool = True, save_path: str = "som_weights.png"
    ):
        """
        Visualize SOM weights

        Square grids are drawn as an image; hexagonal grids as hexagon
        markers at the node coordinates; cube layers side by side.

        Args:
            som: Trained SOM instance
            show_plot: Whether to display the visualization
            save_path: Path to save the visualization (None to skip saving)
        """
        grid = som.grid
        colors = node_colors(som.grid.weights)
        single_feature = colors.ndim == 1

        plt.figure(figsize=(8, 8))
        if grid.topology == Topology.SQUARE:
            img = grid.reshape(colors)
            if single_feature:
                plt.imshow(img, cmap="viridis", interpolation="nearest")
                plt.colorbar(label="Weight Value")
            else:
                plt.imshow(img, interpolation="nearest")
        else:
            coords = grid.coords
            x = coords[:, 1].copy()
            y = -coords[:, 0]
            if grid.topology == Topology.CUBE:
                # Lay the depth layers out next to each other
                x = x + coords[:, 2] * (grid.dims[1] + 1)
                marker = "s"
            else:
                marker = "h"
            scatter = plt.scatter(
                x,
                y,
                c=colors,
                cmap="viridis" if single_feature else None,
                marker=marker,
                s=max(20, 4000 // max(grid.dims)),
            )
            if single_feature:
                plt.colorbar(scatter, label="Weight Value")
            plt.gca().set_aspect("equal")

        plt.title(f"SOM Weight Visualization ({grid.topology.value})")
        plt.axis("off")

        if save_path:
            plt.savefig(ensure_parent_dir(save_path), dpi=150, bbox_inches="tight")

        if show_plot:
            plt.show()
        else:
            plt.close()

    @staticmethod
    def plot_training_progress(
        som: "SOM", show_plot: bool = True, save_path: str = "training_progress.png"
    ):
        """
        Plot every epoch metric of the training history in its own panel

        Epoch numbers continue across repeated train calls, so a map trained
        twice shows one continuous curve per metric.

        Args:
            som: Trained SOM instance
            show_plot: Whether to display the plot
            save_path: Path to save the plot image (None to skip saving)
        """
        history = som.metadata.get("training_history")
        if not history:
            return

        frame = pd.DataFrame(history).set_index("epoch")
        fig, axes = plt.subplots(1, len(_PROGRESS_PANELS), figsize=(15, 4))

        for ax, (key, label, color) in zip(axes, _PROGRESS_PANELS):
            ax.plot(frame.index, frame[key], color=color, linewidth=2, marker=".")
            ax.set_xlabel("Epoch")
            ax.set_ylabel(label)
            ax.set_title(label)
            ax.grid(True, alpha=0.3)

        fig.suptitle(f"Training progress ({som.grid.topology.value} {som.grid.dims})")
        fig.tight_layout()

        if save_path:
            fig.savefig(ensure_parent_dir(save_path), dpi=150, bbox_inches="tight")

        if show_plot:
            plt.show()
        else:
            plt.close(fig)
