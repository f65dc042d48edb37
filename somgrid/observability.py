"""
Logging and metrics for SOM training

Log events go through structlog. Inside trace_operation every event, including
the ones emitted by the training loop, carries the operation's correlation id.
"""

import logging
import time
import uuid
from contextlib import contextmanager
from typing import Iterator

import structlog
from prometheus_client import Counter, Histogram, generate_latest

TRAINING_DURATION = Histogram(
    "somgrid_training_duration_seconds",
    "Wall time of one SOM.train call in seconds",
    ["topology"],
)

TRAINING_ITERATIONS = Counter(
    "somgrid_training_iterations_total", "Training steps applied to a grid"
)

PREDICTION_REQUESTS = Counter(
    "somgrid_predictions_total", "Samples mapped to their best-matching node"
)

BMU_TIES = Counter(
    "somgrid_bmu_ties_total", "BMU searches resolved by a random tie-break"
)

_TIMESTAMPER = structlog.processors.TimeStamper(fmt="ISO")


def setup_logging(log_level: str = "INFO", json_format: bool = True) -> None:
    """
    Route structlog through the standard library logger

    Args:
        log_level: Name of the lowest level to emit
        json_format: Render JSON lines instead of coloured console output
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if json_format
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            _TIMESTAMPER,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", level=getattr(logging, log_level.upper()))


@contextmanager
def trace_operation(operation_name: str, **extra_context) -> Iterator[str]:
    """
    Log the start, end and duration of an operation under a fresh correlation id

    Failures are logged with their exception type and re-raised.

    Yields:
        The correlation id bound for the duration of the block
    """
    logger = structlog.get_logger()
    correlation_id = str(uuid.uuid4())
    start_time = time.time()

    with structlog.contextvars.bound_contextvars(
        correlation_id=correlation_id, operation=operation_name
    ):
        logger.info("Operation started", **extra_context)
        try:
            yield correlation_id
        except Exception as e:
            logger.error(
                "Operation failed",
                duration_seconds=time.time() - start_time,
                error=str(e),
                error_type=type(e).__name__,
                **extra_context,
            )
            raise
        logger.info(
            "Operation completed",
            duration_seconds=time.time() - start_time,
            **extra_context,
        )


def get_metrics() -> bytes:
    """Prometheus exposition text of all somgrid metrics"""
    return generate_latest()


def log_training_metrics(topology: str, duration: float, iterations: int):
    TRAINING_DURATION.labels(topology=topology).observe(duration)
    TRAINING_ITERATIONS.inc(iterations)


def log_prediction_metrics(count: int = 1):
    PREDICTION_REQUESTS.inc(count)
