import random

import pytest

from conftest import bfs_distance, run_to_end
from slow_astar.core.engine import GridView, IncrementalSearch, score_point
from slow_astar.core.maps import parse_ascii
from slow_astar.core.types import (
    CellState,
    EmptyGridError,
    InvalidCoordinateError,
    SearchError,
    SearchExhausted,
    SearchState,
    StepStatus,
)

RANK = {
    CellState.UNVISITED: 0,
    CellState.DISCOVERED: 1,
    CellState.FINALIZED: 2,
    CellState.ON_PATH: 3,
}


def _random_case(rng: random.Random):
    h, w = rng.randint(1, 8), rng.randint(1, 8)
    grid = [[rng.random() > 0.3 for _ in range(w)] for _ in range(h)]
    open_cells = [(r, c) for r in range(h) for c in range(w) if grid[r][c]]
    if not open_cells:
        grid[0][0] = True
        open_cells = [(0, 0)]
    return grid, rng.choice(open_cells), rng.choice(open_cells)


def _random_cases(n=80, seed=1234):
    rng = random.Random(seed)
    return [_random_case(rng) for _ in range(n)]


def test_score_point_is_g_plus_manhattan():
    assert score_point((0, 0), 0, (2, 2)) == 4
    assert score_point((3, 1), 5, (1, 4)) == 5 + 2 + 3
    assert score_point((2, 2), 4, (2, 2)) == 4


def test_initial_view_shows_walls_and_start(walled_off):
    search = IncrementalSearch(walled_off, (0, 0), (0, 2))
    view = search.grid_view()
    assert isinstance(view, GridView)
    assert (view.height, view.width, len(view)) == (3, 3, 3)
    assert view[0, 0] is CellState.DISCOVERED
    assert view.cells(CellState.WALL) == [(0, 1), (1, 1), (2, 1)]
    assert view.count(CellState.UNVISITED) == 5
    assert search.state is SearchState.RUNNING
    assert search.distance_to((0, 0)) == 0
    assert search.open_cells == {(0, 0)}
    assert search.closed_cells == frozenset()


def test_three_by_three_example(open_3x3):
    search = IncrementalSearch(open_3x3, (0, 0), (2, 2))
    outcome, steps = run_to_end(search)

    assert outcome == "complete"
    assert search.distance_to((2, 2)) == 4
    view = search.grid_view()
    assert view.count(CellState.ON_PATH) == 5
    # lower h wins ties, then first pushed: down before right from the start
    assert search.path() == [(0, 0), (1, 0), (2, 0), (2, 1), (2, 2)]
    assert steps == 5
    assert search.done and search.state is SearchState.SUCCEEDED


def test_start_equal_to_destination(open_3x3):
    search = IncrementalSearch(open_3x3, (1, 1), (1, 1))
    assert search.expand_one() is StepStatus.COMPLETE
    assert search.path() == [(1, 1)]
    assert search.grid_view().cells(CellState.ON_PATH) == [(1, 1)]


def test_no_path_is_exhausted(walled_off):
    search = IncrementalSearch(walled_off, (0, 0), (2, 2))
    outcome, steps = run_to_end(search)

    assert outcome == "exhausted"
    assert steps == 4  # three finalizations, then the empty frontier
    assert search.state is SearchState.EXHAUSTED
    assert search.path() == []
    assert search.grid_view().count(CellState.ON_PATH) == 0
    assert search.distance_to((2, 2)) is None


def test_exhausted_is_terminal(walled_off):
    search = IncrementalSearch(walled_off, (0, 0), (2, 2))
    run_to_end(search)
    before = search.grid_view()
    with pytest.raises(SearchExhausted):
        search.expand_one()
    assert search.grid_view() == before


def test_complete_is_terminal(open_3x3):
    search = IncrementalSearch(open_3x3, (0, 0), (2, 2))
    run_to_end(search)
    before, metrics = search.grid_view(), search.metrics()
    assert search.expand_one() is StepStatus.COMPLETE
    assert search.grid_view() == before
    assert search.metrics() == metrics


def test_grid_view_is_a_snapshot(open_3x3):
    search = IncrementalSearch(open_3x3, (0, 0), (2, 2))
    view = search.grid_view()
    search.expand_one()
    assert view[0, 0] is CellState.DISCOVERED
    assert search.grid_view()[0, 0] is CellState.FINALIZED
    with pytest.raises(IndexError):
        view[3, 0]


def test_improved_cell_leaves_stale_entry_behind():
    level = parse_ascii(
        """
        ...#D
        .....
        S....
        """
    )
    search = level.make_search()
    for _ in range(5):
        assert search.expand_one() is StepStatus.CONTINUING
    assert search.closed_cells == {(2, 0), (1, 0), (0, 0), (0, 1), (0, 2)}
    # first reached from above, around the long way
    assert search.distance_to((1, 2)) == 5

    search.expand_one()  # finalizes (1, 1)
    assert search.distance_to((1, 2)) == 3
    assert search.frontier_size > len(search.open_cells)

    outcome, _ = run_to_end(search)
    assert outcome == "complete"
    assert search.distance_to(level.destination) == 6


@pytest.mark.parametrize("grid, start, dest", _random_cases())
def test_distance_matches_bfs(grid, start, dest):
    search = IncrementalSearch(grid, start, dest)
    outcome, _ = run_to_end(search)
    expected = bfs_distance(grid, start, dest)
    if expected is None:
        assert outcome == "exhausted"
    else:
        assert outcome == "complete"
        assert search.distance_to(dest) == expected


@pytest.mark.parametrize("grid, start, dest", _random_cases(n=30, seed=99))
def test_classification_only_moves_forward(grid, start, dest):
    search = IncrementalSearch(grid, start, dest)
    walls = search.grid_view().cells(CellState.WALL)
    traversable = sum(row.count(True) for row in grid)
    prev = search.grid_view()
    finalized_dist = {}
    finalizations = 0

    while not search.done:
        try:
            search.expand_one()
        except SearchExhausted:
            pass
        view = search.grid_view()
        assert view.cells(CellState.WALL) == walls
        for r in range(view.height):
            for c in range(view.width):
                if view[r, c] is CellState.WALL:
                    continue
                assert RANK[view[r, c]] >= RANK[prev[r, c]]
        for cell in view.cells(CellState.FINALIZED) + view.cells(CellState.ON_PATH):
            d = search.distance_to(cell)
            assert finalized_dist.setdefault(cell, d) == d
        finalizations = len(search.closed_cells)
        prev = view

    assert finalizations <= traversable


@pytest.mark.parametrize("grid, start, dest", _random_cases(n=30, seed=7))
def test_path_is_connected_and_open(grid, start, dest):
    search = IncrementalSearch(grid, start, dest)
    if run_to_end(search)[0] != "complete":
        return
    path = search.path()
    assert path[0] == start and path[-1] == dest
    assert len(path) == search.distance_to(dest) + 1
    for (r0, c0), (r1, c1) in zip(path, path[1:]):
        assert abs(r0 - r1) + abs(c0 - c1) == 1
    assert all(grid[r][c] for r, c in path)
    assert set(search.grid_view().cells(CellState.ON_PATH)) == set(path)


def test_replay_is_deterministic():
    grid, start, dest = _random_cases(n=1, seed=2024)[0]

    def finalized_order():
        search = IncrementalSearch(grid, start, dest)
        order = []
        while not search.done:
            try:
                search.expand_one()
            except SearchExhausted:
                break
            order.append(search.metrics()["closed_count"])
            order.append(sorted(search.closed_cells))
        return order, search.grid_view()

    assert finalized_order() == finalized_order()


def test_metrics_track_progress(open_3x3):
    search = IncrementalSearch(open_3x3, (0, 0), (2, 2))
    m = search.metrics()
    assert m["popped"] == 0 and m["open_size"] == 1 and m["frontier_size"] == 1
    search.expand_one()
    m = search.metrics()
    assert m["popped"] == 1
    assert m["closed_count"] == 1
    assert m["open_size"] == 2
    assert m["state"] == "running"
    run_to_end(search)
    assert search.metrics()["path_len"] == 5


@pytest.mark.parametrize("grid", [[], [[]], [[True, True], [True]]])
def test_bad_grid_rejected(grid):
    with pytest.raises(EmptyGridError):
        IncrementalSearch(grid, (0, 0), (0, 0))


@pytest.mark.parametrize("start, dest", [((3, 0), (0, 0)), ((0, 0), (0, 3)), ((-1, 0), (0, 0))])
def test_out_of_bounds_rejected(open_3x3, start, dest):
    with pytest.raises(InvalidCoordinateError) as info:
        IncrementalSearch(open_3x3, start, dest)
    assert isinstance(info.value, SearchError)
    assert isinstance(info.value, ValueError)
    assert (info.value.height, info.value.width) == (3, 3)


def test_wall_destination_is_never_reached():
    grid = [[True, True], [True, False]]
    search = IncrementalSearch(grid, (0, 0), (1, 1))
    assert run_to_end(search)[0] == "exhausted"
    assert search.grid_view()[1, 1] is CellState.WALL


@pytest.mark.parametrize("start", [(1.9, 0), ("1", 0), (0,), (0, 0, 0)])
def test_non_integer_coordinates_rejected(open_3x3, start):
    with pytest.raises(InvalidCoordinateError, match="not a pair of integers"):
        IncrementalSearch(open_3x3, start, (2, 2))


def test_metrics_keys(open_3x3):
    search = IncrementalSearch(open_3x3, (0, 0), (2, 2))
    assert set(search.metrics()) == {
        "popped", "open_size", "closed_count", "frontier_size", "path_len", "state",
    }


def test_wall_start_is_expanded_but_stays_wall():
    grid = [[False, True], [True, True]]
    search = IncrementalSearch(grid, (0, 0), (1, 1))
    assert search.grid_view()[0, 0] is CellState.WALL

    outcome, steps = run_to_end(search)
    assert outcome == "complete"
    assert steps == 3
    assert search.path() == [(0, 0), (1, 0), (1, 1)]
    view = search.grid_view()
    assert view[0, 0] is CellState.WALL
    assert view.cells(CellState.ON_PATH) == [(1, 0), (1, 1)]
    assert (0, 0) in search.closed_cells
