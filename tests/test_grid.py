"""
Tests for the Grid container and height normalization.

Run with: pytest tests/test_grid.py -v
"""

import numpy as np
import pytest

from heightgen.errors import InvalidInput
from heightgen.grid import Grid, normalize


class TestGridConstruction:

    def test_count_matches_dimensions(self):
        grid = Grid.full(4, 3)
        assert grid.count == 12
        assert len(grid) == 12
        assert grid.data.shape == (12,)

    @pytest.mark.parametrize("width,height", [(0, 3), (3, 0), (-1, 2), (0, 0)])
    def test_degenerate_dimensions_rejected(self, width, height):
        with pytest.raises(InvalidInput):
            Grid.full(width, height)
        with pytest.raises(InvalidInput):
            Grid(np.zeros(4), width, height)

    def test_backing_length_must_match(self):
        with pytest.raises(InvalidInput):
            Grid(np.zeros(5), 2, 3)

    def test_vector_grid_has_channels(self):
        grid = Grid.full(2, 2, value=(0.0, 0.0, 1.0), channels=3)
        assert grid.channels == 3

    def test_full_rejects_vector_value_for_scalar_grid(self):
        with pytest.raises(InvalidInput):
            Grid.full(2, 2, value=(0.0, 0.0, 1.0))
        np.testing.assert_array_equal(grid[1, 1], [0.0, 0.0, 1.0])

    def test_from_array_keeps_row_major_order(self):
        array = np.arange(6, dtype=float).reshape(2, 3)  # height 2, width 3
        grid = Grid.from_array(array)
        assert grid.shape == (3, 2)
        assert grid[2, 1] == array[1, 2]
        np.testing.assert_array_equal(grid.to_array(), array)

    def test_from_flat_infers_height(self):
        grid = Grid.from_flat(np.arange(8.0), 4)
        assert (grid.width, grid.height) == (4, 2)

    def test_from_flat_rejects_uneven_width(self):
        with pytest.raises(InvalidInput):
            Grid.from_flat(np.arange(7.0), 3)


class TestGridAccess:

    def test_coordinate_and_linear_index_agree(self):
        grid = Grid.from_flat(np.arange(12.0), 4)
        for y in range(3):
            for x in range(4):
                assert grid[x, y] == grid[y * 4 + x]

    def test_iterates_in_row_major_order(self):
        grid = Grid.from_array(np.array([[1.0, 2.0], [3.0, 4.0]]))
        assert list(grid) == [1.0, 2.0, 3.0, 4.0]

    def test_fill_scalar(self):
        grid = Grid.from_flat(np.arange(6.0), 3)
        assert grid.fill(2.5) is grid
        np.testing.assert_array_equal(grid.data, np.full(6, 2.5))

    def test_fill_per_channel(self):
        grid = Grid.full(2, 3, channels=3)
        grid.fill((0.0, 0.6, 0.8))
        for element in grid:
            np.testing.assert_array_equal(element, [0.0, 0.6, 0.8])

    @pytest.mark.parametrize("channels,value", [(None, (1.0, 2.0)), (3, (1.0, 2.0)), (2, [[1.0, 2.0]])])
    def test_fill_rejects_mismatched_value(self, channels, value):
        grid = Grid.full(2, 2, channels=channels)
        with pytest.raises(InvalidInput):
            grid.fill(value)

    def test_set_by_coordinate(self):
        grid = Grid.full(3, 3)
        grid[2, 1] = 7.0
        assert grid.data[1 * 3 + 2] == 7.0

    @pytest.mark.parametrize("key", [(3, 0), (0, 3), (-1, 0), 9, -1])
    def test_out_of_range_raises(self, key):
        grid = Grid.full(3, 3)
        with pytest.raises(IndexError):
            grid[key]

    def test_vector_element_is_a_copy(self):
        grid = Grid.full(2, 2, value=(1.0, 2.0), channels=2)
        element = grid[0, 0]
        element[0] = 99.0
        assert grid[0, 0][0] == 1.0

    def test_equality_is_by_content(self):
        a = Grid.from_flat([1.0, 2.0, 3.0, 4.0], 2)
        b = Grid.from_flat([1.0, 2.0, 3.0, 4.0], 2)
        c = Grid.from_flat([1.0, 2.0, 3.0, 4.0], 4)
        assert a == b
        assert a != c


class TestGridConvert:

    def test_convert_produces_new_element_type(self):
        grid = Grid.from_flat(np.arange(4.0), 2)
        pairs = grid.convert(lambda v: np.stack([v, -v], axis=-1))
        assert pairs.channels == 2
        assert pairs.shape == grid.shape
        np.testing.assert_array_equal(pairs[1, 1], [3.0, -3.0])

    def test_convert_does_not_alias(self):
        grid = Grid.from_flat(np.arange(4.0), 2)
        same = grid.convert(lambda v: v)
        same[0] = 42.0
        assert grid[0] == 0.0

    def test_converter_cannot_mutate_source(self):
        grid = Grid.from_flat(np.arange(4.0), 2)

        def mutate(values):
            values[0] = 1.0
            return values

        with pytest.raises(ValueError):
            grid.convert(mutate)

    def test_converter_must_keep_element_count(self):
        grid = Grid.from_flat(np.arange(4.0), 2)
        with pytest.raises(InvalidInput):
            grid.convert(lambda v: v[:2])


class TestNormalize:

    def test_range_is_zero_to_one(self):
        grid = Grid.from_flat([-3.0, 1.0, 5.0, 2.0], 2)
        grid.normalize()
        np.testing.assert_allclose(grid.data, [0.0, 0.5, 1.0, 0.625])

    def test_idempotent(self):
        rng = np.random.default_rng(7)
        grid = Grid.from_flat(rng.normal(size=64) * 10.0, 8)
        once = grid.copy().normalize()
        twice = once.copy().normalize()
        np.testing.assert_array_equal(once.data, twice.data)

    @pytest.mark.parametrize("value", [0.0, 3.5, -12.0, 1e300, -1e300])
    def test_constant_grid_becomes_zero(self, value):
        grid = Grid.full(5, 4, value=value)
        normalize(grid)
        np.testing.assert_array_equal(grid.data, np.zeros(20))

    @pytest.mark.filterwarnings("error")
    def test_extreme_range_does_not_overflow(self):
        grid = Grid.from_flat([-1e308, 0.0, 1e308, 5e307], 2)
        grid.normalize()
        assert np.all(np.isfinite(grid.data))
        assert grid.data.min() == 0.0
        assert grid.data.max() == 1.0

    def test_integer_grid_is_promoted(self):
        grid = Grid.from_flat(np.array([0, 2, 4, 8]), 2)
        grid.normalize()
        np.testing.assert_allclose(grid.data, [0.0, 0.25, 0.5, 1.0])

    def test_vector_grid_rejected(self):
        with pytest.raises(InvalidInput):
            Grid.full(2, 2, channels=2).normalize()
