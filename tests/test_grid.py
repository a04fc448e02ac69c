import numpy as np
import pytest

from idxdock.errors import BadArgument
from idxdock.geometry.grid import SpatialIndexGrid


def test_sphere_insertion_covers_every_cell_within_radius():
    grid = SpatialIndexGrid.create_grid((0, 0, 0), (6, 6, 6), 0.5, border=1.0)
    anchor = np.array([2.3, 3.1, 2.9])
    radius = 1.7
    grid.insert_with_radius(7, anchor, radius)

    start, items = grid.csr()
    for idx in range(grid.n_cells):
        c = grid.cell_center(idx)
        if np.linalg.norm(c - anchor) <= radius:
            assert 7 in items[start[idx]:start[idx + 1]]


def test_query_anywhere_in_range_sees_entity_when_radius_includes_max_error():
    grid = SpatialIndexGrid.create_grid((0, 0, 0), (5, 5, 5), 0.4, border=2.0)
    anchor = np.array([2.5, 2.5, 2.5])
    r = 1.2
    grid.insert_with_radius(3, anchor, r + grid.max_error)
    rng = np.random.default_rng(0)
    for _ in range(200):
        v = rng.normal(size=3)
        p = anchor + v / np.linalg.norm(v) * r * rng.random()
        assert 3 in grid.query_cell(p)


def test_off_grid_query_is_empty():
    grid = SpatialIndexGrid.create_grid((0, 0, 0), (2, 2, 2), 0.5)
    grid.insert_with_radius(1, (1, 1, 1), 5.0)
    assert grid.cell_index((50.0, 0.0, 0.0)) == -1
    assert grid.query_cell((50.0, 0.0, 0.0)).size == 0
    assert grid.query_cell((-3.0, 1.0, 1.0)).size == 0


def test_zero_size_grid_is_valid_and_empty():
    grid = SpatialIndexGrid((0, 0, 0), 0.5, (0, 0, 0))
    grid.insert_with_radius(1, (0, 0, 0), 3.0)
    assert len(grid) == 0
    assert grid.query_cell((0, 0, 0)).size == 0
    assert np.all(grid.cell_indices(np.zeros((4, 3))) == -1)


def test_deduplicate_removes_repeated_entities():
    grid = SpatialIndexGrid.create_grid((0, 0, 0), (3, 3, 3), 0.5)
    grid.insert_with_radius(2, (1.5, 1.5, 1.5), 1.0)
    grid.insert_with_radius(2, (1.6, 1.5, 1.5), 1.0)
    grid.insert_with_radius(5, (1.5, 1.5, 1.5), 0.6)
    before = grid.query_cell((1.5, 1.5, 1.5))
    assert list(before).count(2) == 2

    grid.deduplicate()
    after = grid.query_cell((1.5, 1.5, 1.5))
    assert sorted(after) == [2, 5]


def test_clear_empties_the_grid():
    grid = SpatialIndexGrid.create_grid((0, 0, 0), (3, 3, 3), 0.5)
    grid.insert_with_radius(2, (1.5, 1.5, 1.5), 1.0)
    grid.clear()
    assert len(grid) == 0
    assert grid.query_cell((1.5, 1.5, 1.5)).size == 0


def test_cell_indices_match_cell_index():
    grid = SpatialIndexGrid.create_grid((-1, -1, -1), (2, 3, 4), 0.7)
    pts = np.array([[0.1, 0.2, 0.3], [1.9, 2.9, 3.9], [10.0, 0.0, 0.0], [-1.0, -1.0, -1.0]])
    assert list(grid.cell_indices(pts)) == [grid.cell_index(p) for p in pts]


def test_bad_grid_arguments():
    with pytest.raises(BadArgument):
        SpatialIndexGrid((0, 0, 0), 0.0, (2, 2, 2))
    with pytest.raises(BadArgument):
        SpatialIndexGrid((0, 0, 0), 0.5, (2, -1, 2))
