"""
Tests for grids, topologies and the BMU search
"""

from collections import Counter

import pytest
import numpy as np
from somgrid import Grid, Topology, DistanceMetric
from somgrid.exceptions import (
    ConfigurationError,
    IndexOutOfRangeError,
    UninitializedStateError,
)
from somgrid.grid import HEX_SCALE


@pytest.mark.unit
class TestTopologies:
    """Test coordinate generation per topology"""

    @pytest.mark.unit
    def test_square_coordinates(self):
        grid = Grid.square(2, 3)
        assert grid.size == 6
        np.testing.assert_array_equal(
            grid.coords,
            [[0, 0], [0, 1], [0, 2], [1, 0], [1, 1], [1, 2]],
        )

    @pytest.mark.unit
    def test_hexagonal_coordinates(self):
        grid = Grid.hexagonal(4, 3)
        assert grid.size == 12
        assert HEX_SCALE == pytest.approx(np.sqrt(3) / 2)

        np.testing.assert_array_almost_equal(grid.node(0, 0).coords, [0.0, 0.0])
        np.testing.assert_array_almost_equal(grid.node(0, 2).coords, [0.0, 2.0])
        np.testing.assert_array_almost_equal(grid.node(1, 0).coords, [np.sqrt(3) / 2, 0.5])
        np.testing.assert_array_almost_equal(grid.node(1, 2).coords, [np.sqrt(3) / 2, 2.5])
        np.testing.assert_array_almost_equal(grid.node(2, 1).coords, [np.sqrt(3), 1.0])
        np.testing.assert_array_almost_equal(
            grid.node(3, 1).coords, [3 * np.sqrt(3) / 2, 1.5]
        )

    @pytest.mark.unit
    def test_hexagonal_neighbors_are_equidistant(self):
        grid = Grid.hexagonal(5, 5)
        distances = grid.calc_node_distances_to_point(grid.node(2, 2).coords)
        neighbors = np.isclose(distances, 1.0)
        assert neighbors.sum() == 6
        assert np.sort(distances)[1] == pytest.approx(1.0)

    @pytest.mark.unit
    def test_hexagonal_alternating_rows(self):
        grid = Grid.hexagonal_alternating(5, 4)

        assert grid.row_lengths == [4, 3, 4, 3, 4]
        assert grid.size == 18
        assert [len(row) for row in grid.node_grid] == [4, 3, 4, 3, 4]

        np.testing.assert_array_almost_equal(grid.node(1, 0).coords, [np.sqrt(3) / 2, 0.5])
        np.testing.assert_array_almost_equal(grid.node(1, 2).coords, [np.sqrt(3) / 2, 2.5])
        np.testing.assert_array_almost_equal(grid.node(4, 3).coords, [2 * np.sqrt(3), 3.0])

    @pytest.mark.unit
    def test_hexagonal_alternating_index_bounds(self):
        grid = Grid.hexagonal_alternating(3, 4)
        grid.node(0, 3)
        with pytest.raises(IndexOutOfRangeError):
            grid.node(1, 3)
        with pytest.raises(IndexError):
            grid.node(3, 0)

    @pytest.mark.unit
    def test_cube_coordinates(self):
        grid = Grid.cube(2, 3, 4)
        assert grid.size == 24
        assert grid.coords.shape == (24, 3)
        np.testing.assert_array_equal(grid.coords[1], [0, 0, 1])
        np.testing.assert_array_equal(grid.coords[4], [0, 1, 0])
        np.testing.assert_array_equal(grid.node(1, 2, 3).coords, [1, 2, 3])
        assert grid.index_of(1, 2, 3) == 23

    @pytest.mark.unit
    def test_flat_order_matches_nested_structure(self, all_topologies):
        for topology, dims in all_topologies:
            grid = Grid(topology, dims)
            nested = grid.node_grid
            if topology == Topology.CUBE:
                flattened = [n for plane in nested for row in plane for n in row]
            else:
                flattened = [n for row in nested for n in row]
            assert flattened == grid.nodes
            for position, idx in enumerate(grid.indices):
                assert grid.node(*idx) is grid.nodes[position]

    @pytest.mark.unit
    def test_coordinates_are_deterministic(self, all_topologies):
        for topology, dims in all_topologies:
            np.testing.assert_array_equal(
                Grid(topology, dims, seed=1).coords, Grid(topology, dims, seed=2).coords
            )

    @pytest.mark.unit
    def test_coordinates_cannot_be_modified(self):
        grid = Grid.square(2, 2)
        with pytest.raises(ValueError):
            grid.coords[0, 0] = 3.0


@pytest.mark.unit
class TestGridConstruction:
    """Test construction errors and accessors"""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "topology, dims",
        [
            (Topology.SQUARE, (0, 3)),
            (Topology.HEXAGONAL, (3, -1)),
            (Topology.SQUARE, (2, 2, 2)),
            (Topology.CUBE, (2, 2)),
        ],
    )
    def test_invalid_dimensions(self, topology, dims):
        with pytest.raises(ConfigurationError):
            Grid(topology, dims)

    @pytest.mark.unit
    def test_unknown_topology(self):
        with pytest.raises(ConfigurationError, match="Unknown topology"):
            Grid("triangular", (2, 2))

    @pytest.mark.unit
    def test_toroidal_feature_metric_rejected(self):
        with pytest.raises(ConfigurationError, match="grid coordinates"):
            Grid.square(2, 2, distance_function=DistanceMetric.TOROIDAL)

    @pytest.mark.unit
    def test_wrong_arity_index(self):
        grid = Grid.square(2, 2)
        with pytest.raises(IndexOutOfRangeError, match="Expected 2 indices"):
            grid.node(0)
        with pytest.raises(IndexOutOfRangeError):
            grid.node(-1, 0)

    @pytest.mark.unit
    def test_weights_before_initialization(self):
        grid = Grid.square(2, 2)
        assert grid.feature_depth is None
        with pytest.raises(UninitializedStateError):
            grid.weights
        with pytest.raises(UninitializedStateError):
            grid.nodes[0].weights
        with pytest.raises(UninitializedStateError):
            grid.find_best_node_id_and_score([0.5])

    @pytest.mark.unit
    def test_eager_initialization(self):
        grid = Grid.hexagonal(3, 3, feature_depth=4, seed=0, lower_bound=2.0, upper_bound=3.0)
        assert grid.feature_depth == 4
        assert grid.weights.shape == (9, 4)
        assert np.all((grid.weights >= 2.0) & (grid.weights < 3.0))

    @pytest.mark.unit
    def test_initialization_is_reproducible(self):
        first = Grid.square(3, 3, seed=5, feature_depth=2)
        second = Grid.square(3, 3, seed=5, feature_depth=2)
        np.testing.assert_array_equal(first.weights, second.weights)

    @pytest.mark.unit
    def test_per_index_bounds_on_grid(self):
        grid = Grid.square(4, 4, seed=0).initialize_weights(
            3, lower_bound=[0.0, 0.0, 0.5], upper_bound=[0.1, 1.0, 0.5]
        )
        assert np.all(grid.weights[:, 0] < 0.1)
        np.testing.assert_array_equal(grid.weights[:, 2], 0.5)

    @pytest.mark.unit
    def test_node_weights_are_views_of_grid_weights(self, square_grid):
        square_grid.weights[5] += 1.0
        np.testing.assert_array_equal(square_grid.nodes[5].weights, square_grid.weights[5])

        square_grid.nodes[2].weights[0] = -7.0
        assert square_grid.weights[2, 0] == -7.0

    @pytest.mark.unit
    def test_seeding_a_node_updates_the_grid(self):
        grid = Grid.square(1, 2, seed=0, feature_depth=1)
        grid.nodes[0].set_weights([0.9])

        assert grid.weights[0, 0] == 0.9
        assert grid.find_best_node([0.9]) is grid.nodes[0]

        grid.nodes[1].init_weights(1, np.random.RandomState(4), 0.95, 0.95)
        assert grid.weights[1, 0] == 0.95
        assert grid.find_best_node([1.0]) is grid.nodes[1]

    @pytest.mark.unit
    def test_node_depth_cannot_change(self, square_grid):
        with pytest.raises(ConfigurationError, match="fixed at 2"):
            square_grid.nodes[0].init_weights(5, np.random.RandomState(0))
        with pytest.raises(ConfigurationError):
            square_grid.nodes[0].set_weights([0.1, 0.2, 0.3])
        assert square_grid.nodes[0].weights.shape == (2,)

    @pytest.mark.unit
    def test_alternating_hexagonal_needs_two_columns(self):
        with pytest.raises(ConfigurationError, match="width of at least 2"):
            Grid.hexagonal_alternating(3, 1)
        assert Grid.hexagonal_alternating(3, 2).row_lengths == [2, 1, 2]

    @pytest.mark.unit
    def test_set_weights(self, square_grid):
        seeded = np.arange(24, dtype=float).reshape(12, 2)
        square_grid.set_weights(seeded)
        np.testing.assert_array_equal(square_grid.weights, seeded)
        np.testing.assert_array_equal(square_grid.node(1, 0).weights, [8.0, 9.0])

        with pytest.raises(ConfigurationError):
            square_grid.set_weights(np.zeros((11, 2)))

    @pytest.mark.unit
    def test_reshape(self):
        grid = Grid.square(2, 3, feature_depth=2)
        assert grid.reshape(grid.weights).shape == (2, 3, 2)

        hex_alt = Grid.hexagonal_alternating(3, 3, feature_depth=2)
        rows = hex_alt.reshape(hex_alt.weights)
        assert [len(row) for row in rows] == [3, 2, 3]

        cube = Grid.cube(2, 2, 2)
        assert cube.reshape(np.arange(8)).shape == (2, 2, 2)


@pytest.mark.unit
class TestBestMatchingUnit:
    """Test BMU search and tie-breaking"""

    @pytest.mark.unit
    def test_best_node_has_minimal_score(self, all_topologies):
        rng = np.random.RandomState(3)
        for topology, dims in all_topologies:
            grid = Grid(topology, dims, seed=11, feature_depth=3)
            for sample in rng.random_sample((25, 3)):
                result = grid.find_best_node_id_and_score(sample)
                scores = np.sum((grid.weights - sample) ** 2, axis=1)
                assert result.distance == pytest.approx(scores.min())
                assert scores[result.node_id] <= scores.min()

    @pytest.mark.unit
    def test_find_best_node_returns_node(self, square_grid):
        seeded = np.zeros((12, 2))
        seeded[7] = [0.9, 0.9]
        square_grid.set_weights(seeded)
        assert square_grid.find_best_node([1.0, 1.0]) is square_grid.nodes[7]

    @pytest.mark.unit
    def test_custom_distance_function(self):
        def manhattan(a, b):
            return np.sum(np.abs(a - b), axis=-1)

        grid = Grid.square(1, 3, distance_function=manhattan)
        grid.set_weights([[0.0, 0.0], [0.6, 0.6], [1.0, 0.0]])
        assert grid.find_best_node_id_and_score([0.9, 0.1]).node_id == 2

    @pytest.mark.unit
    def test_sample_length_must_match_depth(self, square_grid):
        with pytest.raises(ConfigurationError, match="2 features"):
            square_grid.find_best_node_id_and_score([0.1, 0.2, 0.3])

    @pytest.mark.unit
    def test_ties_broken_evenly_with_one_source(self):
        grid = Grid.square(1, 4, seed=123)
        grid.set_weights(np.zeros((4, 1)))

        counts = Counter(
            grid.find_best_node_id_and_score([0.5]).node_id for _ in range(4000)
        )
        assert set(counts) == {0, 1, 2, 3}
        for node_id in range(4):
            assert 800 < counts[node_id] < 1200

    @pytest.mark.unit
    def test_ties_broken_evenly_across_seeds(self):
        counts = Counter()
        for seed in range(400):
            grid = Grid.square(2, 2, seed=seed)
            # Nodes 0, 1 and 3 tie; node 2 is strictly worse
            grid.set_weights([[0.2], [0.2], [0.9], [0.2]])
            counts[grid.find_best_node_id_and_score([0.2]).node_id] += 1

        assert counts[2] == 0
        for node_id in (0, 1, 3):
            assert 90 < counts[node_id] < 180

    @pytest.mark.unit
    def test_strictly_smaller_score_discards_ties(self):
        grid = Grid.square(1, 4, seed=0)
        grid.set_weights([[0.5], [0.5], [0.45], [0.5]])
        for _ in range(50):
            assert grid.find_best_node_id_and_score([0.45]).node_id == 2


@pytest.mark.unit
class TestNodeDistances:
    """Test grid-space distances"""

    @pytest.mark.unit
    def test_distances_to_point(self):
        grid = Grid.square(2, 2)
        np.testing.assert_array_almost_equal(
            grid.calc_node_distances_to_point([0.0, 0.0]), [0.0, 1.0, 1.0, np.sqrt(2)]
        )

    @pytest.mark.unit
    def test_toroidal_neighborhood(self):
        grid = Grid.square(4, 4, neighborhood_distance_function=DistanceMetric.TOROIDAL)
        distances = grid.calc_node_distances_to_point(grid.node(0, 0).coords)
        assert distances[grid.index_of(3, 3)] == pytest.approx(np.sqrt(2))
        assert distances[grid.index_of(0, 3)] == pytest.approx(1.0)

    @pytest.mark.unit
    def test_toroidal_neighborhood_with_partial_wrap(self):
        grid = Grid.square(
            4, 4, neighborhood_distance_function="toroidal", wrap=(False, True)
        )
        distances = grid.calc_node_distances_to_point(grid.node(0, 0).coords)
        assert distances[grid.index_of(3, 0)] == pytest.approx(3.0)
        assert distances[grid.index_of(0, 3)] == pytest.approx(1.0)

    @pytest.mark.unit
    def test_point_length_must_match(self):
        grid = Grid.cube(2, 2, 2)
        with pytest.raises(ConfigurationError):
            grid.calc_node_distances_to_point([0.0, 0.0])
