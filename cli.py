"""
Command Line Interface for SOM training with observability
"""

import argparse
import json
import os
import sys
import structlog
from pathlib import Path

import numpy as np
import pandas as pd

from somgrid import (
    SOM,
    SOMConfig,
    Topology,
    DistanceMetric,
    DataNormalizer,
    SOMError,
    setup_logging,
    trace_operation,
    __version__,
)
from somgrid.visualization import ensure_parent_dir, weights_frame

# Console logs for interactive use; LOG_LEVEL selects verbosity
setup_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    json_format=False,
)

logger = structlog.get_logger()

FEATURE_METRICS = [m.value for m in DistanceMetric if m != DistanceMetric.TOROIDAL]


def _read_csv(path: Path) -> np.ndarray:
    # Non-numeric columns such as labels are dropped
    return pd.read_csv(path).select_dtypes(include=[np.number]).to_numpy()


def _read_json(path: Path) -> np.ndarray:
    with open(path, "r") as f:
        return np.asarray(json.load(f))


def _read_npz(path: Path) -> np.ndarray:
    with np.load(path) as archive:
        if not archive.files:
            raise ValueError(f"No arrays stored in {path}")
        return archive[archive.files[0]]


LOADERS = {
    "csv": _read_csv,
    "json": _read_json,
    "npy": np.load,
    "npz": _read_npz,
}


def load_data(file_path: str, format: str = "auto") -> np.ndarray:
    """
    Read samples from a csv, json, npy or npz file as a float64 array

    The format is taken from the file suffix unless given explicitly.
    Unreadable files raise ValueError.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {file_path}")

    if format == "auto":
        format = path.suffix.lower()
    loader = LOADERS.get(format.lstrip("."))
    if loader is None:
        raise ValueError(f"Unsupported format: {format}")

    try:
        return np.asarray(loader(path), dtype=np.float64)
    except ValueError:
        raise
    except Exception as e:
        raise ValueError(f"Failed to load data from {file_path}: {e}") from e


def grid_dims(args) -> tuple:
    """Grid dimensions for the selected topology"""
    if args.topology == Topology.CUBE.value:
        return (args.height, args.width, args.depth)
    return (args.height, args.width)


def save_weights(som: SOM, output_path: str) -> None:
    """Write the trained node table as CSV"""
    weights_frame(som.grid).to_csv(ensure_parent_dir(output_path))
    print(f"Weights saved to: {output_path}")


def train_command(args) -> None:
    """Train a SOM on a data file"""
    print(f"Loading data from: {args.input}")
    try:
        data = load_data(args.input, args.format)
        print(f"Data shape: {data.shape}")

        if args.normalize:
            data = DataNormalizer.from_data(data).normalize(data)

        config = SOMConfig(
            dims=grid_dims(args),
            topology=Topology(args.topology),
            feature_depth=data.shape[1] if data.ndim == 2 else None,
            distance_metric=DistanceMetric(args.distance_metric),
            neighborhood_metric=DistanceMetric(args.neighborhood_metric),
            initial_alpha=args.learning_rate,
            sigma_factor=args.sigma_factor,
            min_sigma=args.min_sigma,
            epochs=args.epochs,
            shuffle=not args.no_shuffle,
            seed=args.seed,
        )

        print(
            f"Training SOM: {args.topology} {'x'.join(map(str, config.dims))}, "
            f"{args.epochs} epochs"
        )

        som = SOM.from_config(config, verbose=args.verbose)
        with trace_operation("train", topology=args.topology, epochs=args.epochs):
            som.train(data, config.epochs, shuffle=config.shuffle)

        print("Training completed!")
        if som.grid.is_initialized:
            print(f"Quantization Error: {som.quantization_error(data):.4f}")
            print(f"Topographic Error: {som.topographic_error(data):.4f}")

        save_weights(som, args.output)

        if args.predictions:
            results = som.predict(data)
            with open(ensure_parent_dir(args.predictions), "w") as f:
                json.dump(
                    {
                        "bmu_indices": [r.node_id for r in results],
                        "distances": [r.distance for r in results],
                        "coordinates": [
                            som.grid.coords[r.node_id].tolist() for r in results
                        ],
                    },
                    f,
                    indent=2,
                )
            print(f"Predictions saved to: {args.predictions}")

        if args.image:
            som.visualize_weights(show_plot=False, save_path=args.image)
            print(f"Weights visualization saved to: {args.image}")

    except (SOMError, ValueError, OSError) as e:
        logger.error("Training failed", error=str(e), error_type=type(e).__name__)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def demo_command(args) -> None:
    """Train a square map on random colours and render it"""
    rng = np.random.RandomState(args.seed)
    data = rng.random_sample((args.samples, 3))

    config = SOMConfig(
        dims=(args.height, args.width),
        feature_depth=3,
        epochs=args.epochs,
        seed=args.seed,
    )
    try:
        som = SOM.from_config(config, verbose=args.verbose)
        with trace_operation("demo", samples=args.samples, epochs=args.epochs):
            som.train(data, config.epochs, shuffle=config.shuffle)
        som.visualize_weights(show_plot=False, save_path=args.output)
        print(f"Colour map saved to: {args.output}")
    except (SOMError, OSError) as e:
        logger.error("Demo failed", error=str(e), error_type=type(e).__name__)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def main(argv=None):
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="Self-Organizing Map CLI",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Train command
    train_parser = subparsers.add_parser("train", help="Train a SOM on a data file")
    train_parser.add_argument("input", help="Input data file")
    train_parser.add_argument(
        "--output", "-o", default="som_weights.csv", help="Output weights CSV file"
    )
    train_parser.add_argument(
        "--topology",
        choices=[t.value for t in Topology],
        default=Topology.SQUARE.value,
        help="Grid topology",
    )
    train_parser.add_argument("--height", type=int, default=10, help="Grid height")
    train_parser.add_argument("--width", type=int, default=10, help="Grid width")
    train_parser.add_argument(
        "--depth", type=int, default=3, help="Grid depth (cube topology only)"
    )
    train_parser.add_argument(
        "--epochs", type=int, default=10, help="Number of passes over the data"
    )
    train_parser.add_argument(
        "--learning-rate", type=float, default=1.0, help="Initial learning rate"
    )
    train_parser.add_argument(
        "--sigma-factor",
        type=float,
        default=1.0,
        help="Scale of the initial neighborhood radius",
    )
    train_parser.add_argument(
        "--min-sigma", type=float, default=0.5, help="Smallest neighborhood radius"
    )
    train_parser.add_argument(
        "--distance-metric",
        choices=FEATURE_METRICS,
        default=DistanceMetric.SQUARED.value,
        help="Feature-space distance for the BMU search",
    )
    train_parser.add_argument(
        "--neighborhood-metric",
        choices=[m.value for m in DistanceMetric],
        default=DistanceMetric.EUCLIDEAN.value,
        help="Grid-space distance to the BMU",
    )
    train_parser.add_argument(
        "--format",
        choices=["auto", "csv", "json", "npy", "npz"],
        default="auto",
        help="Input data format",
    )
    train_parser.add_argument(
        "--normalize", action="store_true", help="Scale every feature to [0, 1]"
    )
    train_parser.add_argument(
        "--no-shuffle", action="store_true", help="Keep the sample order fixed"
    )
    train_parser.add_argument(
        "--seed", type=int, help="Random seed for reproducibility"
    )
    train_parser.add_argument(
        "--predictions", help="Write the BMU of every sample to this JSON file"
    )
    train_parser.add_argument("--image", help="Save a weights image to this file")
    train_parser.add_argument("--verbose", action="store_true", help="Verbose output")

    # Demo command
    demo_parser = subparsers.add_parser(
        "demo", help="Train on random colours and save the map as an image"
    )
    demo_parser.add_argument(
        "--output", "-o", default="som_colors.png", help="Output image file"
    )
    demo_parser.add_argument("--height", type=int, default=20, help="Grid height")
    demo_parser.add_argument("--width", type=int, default=20, help="Grid width")
    demo_parser.add_argument(
        "--samples", type=int, default=500, help="Number of random colours"
    )
    demo_parser.add_argument("--epochs", type=int, default=5, help="Number of epochs")
    demo_parser.add_argument(
        "--seed", type=int, help="Random seed for reproducibility"
    )
    demo_parser.add_argument("--verbose", action="store_true", help="Verbose output")

    # Version command
    subparsers.add_parser("version", help="Show version information")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == "train":
        train_command(args)
    elif args.command == "demo":
        demo_command(args)
    elif args.command == "version":
        print(f"somgrid CLI v{__version__}")
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
