"""
Pytest configuration and fixtures for SOM tests
"""

import pytest
import numpy as np
from somgrid import SOM, SOMConfig, Grid, Topology


@pytest.fixture
def sample_data():
    """Generate sample 3-feature data for testing"""
    rng = np.random.RandomState(42)
    return rng.random_sample((50, 3))


@pytest.fixture
def small_data():
    """Generate small dataset for quick tests"""
    rng = np.random.RandomState(42)
    return rng.random_sample((10, 2))


@pytest.fixture
def basic_config():
    """Basic SOM configuration for testing"""
    return SOMConfig(dims=(5, 5), feature_depth=3, epochs=3, seed=42)


@pytest.fixture
def minimal_config():
    """Minimal SOM configuration for quick tests"""
    return SOMConfig(dims=(3, 3), feature_depth=2, epochs=2, seed=42)


@pytest.fixture
def square_grid():
    """3x4 square grid with 2 features"""
    return Grid.square(3, 4, seed=7, feature_depth=2)


@pytest.fixture
def trained_som(basic_config, sample_data):
    """Pre-trained SOM for testing"""
    som = SOM.from_config(basic_config)
    som.train(sample_data, basic_config.epochs)
    return som


@pytest.fixture
def all_topologies():
    """All topologies with matching dimensions"""
    return [
        (Topology.SQUARE, (3, 4)),
        (Topology.HEXAGONAL, (3, 4)),
        (Topology.HEXAGONAL_ALTERNATING, (3, 4)),
        (Topology.CUBE, (2, 3, 2)),
    ]
