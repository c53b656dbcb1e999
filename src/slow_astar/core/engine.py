# src/slow_astar/core/engine.py
#!/usr/bin/env python3
"""
A* that advances one expansion per call, for watching the search unfold.

API consumed by the viewer:
- IncrementalSearch(passable, start, destination)
- expand_one() -> StepStatus     (raises SearchExhausted when no path exists)
- grid_view()  -> GridView       (read-only snapshot, call after every step)

Heuristic:
- Manhattan distance, admissible and consistent for 4-connected unit moves,
  so the destination's distance is optimal the first time it is popped.

Frontier:
- heapq min-heap of (f, h, seq, cell): lower f, then lower h, then FIFO by seq.
- No decrease-key. An improved cell is pushed again and the old entry is
  dropped when popped, because by then the cell is already closed.
"""

import heapq
import logging
import operator
from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence, Set, Tuple

from slow_astar.core.types import (
    Cell,
    CellState,
    EmptyGridError,
    InvalidCoordinateError,
    SearchExhausted,
    SearchState,
    StepStatus,
)

logger = logging.getLogger(__name__)

# up, down, left, right
_STEPS: Tuple[Cell, ...] = ((-1, 0), (1, 0), (0, -1), (0, 1))


def manhattan(a: Cell, b: Cell) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def score_point(pt: Cell, dist_from_start: int, dest: Cell) -> int:
    """f = g + h with h the Manhattan distance to ``dest``."""
    return dist_from_start + manhattan(pt, dest)


def _grid_shape(passable: Sequence[Sequence[bool]]) -> Tuple[int, int]:
    height = len(passable)
    if height == 0:
        raise EmptyGridError("grid has no rows")
    width = len(passable[0])
    if width == 0:
        raise EmptyGridError("grid has no columns")
    for r, row in enumerate(passable):
        if len(row) != width:
            raise EmptyGridError(f"row {r} has {len(row)} cells, expected {width}")
    return height, width


class GridView:
    """Read-only snapshot of the classification grid, indexed as ``view[row, col]``."""

    __slots__ = ("_cells", "height", "width")

    def __init__(self, cells: Sequence[CellState], height: int, width: int):
        self._cells: Tuple[CellState, ...] = tuple(cells)
        self.height = height
        self.width = width

    def __getitem__(self, cell: Cell) -> CellState:
        r, c = cell
        if not (0 <= r < self.height and 0 <= c < self.width):
            raise IndexError(f"{cell} outside {self.height}x{self.width} view")
        return self._cells[r * self.width + c]

    def __len__(self) -> int:
        return self.height

    def __iter__(self) -> Iterator[Tuple[CellState, ...]]:
        for r in range(self.height):
            yield self.row(r)

    def __eq__(self, other) -> bool:
        if not isinstance(other, GridView):
            return NotImplemented
        return (self.height, self.width, self._cells) == (other.height, other.width, other._cells)

    __hash__ = None

    def row(self, r: int) -> Tuple[CellState, ...]:
        return self._cells[r * self.width:(r + 1) * self.width]

    def count(self, state: CellState) -> int:
        return self._cells.count(state)

    def cells(self, state: CellState) -> List[Cell]:
        """Cells currently in ``state``, row-major."""
        return [divmod(i, self.width) for i, s in enumerate(self._cells) if s is state]

    def __repr__(self) -> str:
        return f"GridView({self.height}x{self.width})"


class IncrementalSearch:
    """Single-destination A* over a boolean grid, one node expansion per ``expand_one()``.

    ``start`` and ``destination`` must be in bounds. Whether they are walls is
    the caller's business: a wall start is still expanded (its cell keeps the
    WALL state), a wall destination is never reached.
    """

    # -------------------- lifecycle --------------------

    def __init__(self, passable: Sequence[Sequence[bool]], start: Cell, destination: Cell):
        self.height, self.width = _grid_shape(passable)
        self.start: Cell = self._checked(start, "start")
        self.destination: Cell = self._checked(destination, "destination")

        # flat row-major classification grid
        self._cells: List[CellState] = [
            CellState.UNVISITED if bool(v) else CellState.WALL
            for row in passable for v in row
        ]

        self._open_pq: List[Tuple[int, int, int, Cell]] = []  # (f, h, seq, cell)
        self._open_set: Set[Cell] = set()
        self._closed_set: Set[Cell] = set()
        self._dist: Dict[Cell, int] = {}
        self._parent: Dict[Cell, Cell] = {}
        self._seq = 0
        self._popped = 0
        self._state = SearchState.RUNNING
        self._path: List[Cell] = []

        s = self.start
        self._dist[s] = 0
        self._open_set.add(s)
        self._push(s, 0)
        self._mark(s, CellState.DISCOVERED)

        logger.debug(
            "New search on %dx%d grid from %s to %s",
            self.height, self.width, self.start, self.destination,
        )

    def _checked(self, cell: Cell, what: str) -> Cell:
        try:
            r, c = (operator.index(v) for v in cell)
        except (TypeError, ValueError):
            raise InvalidCoordinateError(
                cell, self.height, self.width, what, "is not a pair of integers"
            ) from None
        if not self._in_bounds((r, c)):
            raise InvalidCoordinateError((r, c), self.height, self.width, what)
        return (r, c)

    # -------------------- helpers --------------------

    def _in_bounds(self, c: Cell) -> bool:
        r, col = c
        return 0 <= r < self.height and 0 <= col < self.width

    def _index(self, c: Cell) -> int:
        return c[0] * self.width + c[1]

    def _is_wall(self, c: Cell) -> bool:
        return self._cells[self._index(c)] is CellState.WALL

    def _mark(self, c: Cell, state: CellState) -> None:
        # walls keep their state for the whole search
        i = self._index(c)
        if self._cells[i] is not CellState.WALL:
            self._cells[i] = state

    def _bump(self) -> int:
        self._seq += 1
        return self._seq

    def _h(self, c: Cell) -> int:
        return manhattan(c, self.destination)

    def _push(self, c: Cell, g: int) -> None:
        heapq.heappush(self._open_pq, (score_point(c, g, self.destination), self._h(c), self._bump(), c))

    def _neighbors4(self, c: Cell) -> List[Cell]:
        """In-bounds, non-wall, not-yet-finalized neighbours in up/down/left/right order."""
        r, col = c
        out: List[Cell] = []
        for dr, dc in _STEPS:
            n = (r + dr, col + dc)
            if self._in_bounds(n) and not self._is_wall(n) and n not in self._closed_set:
                out.append(n)
        return out

    def _pop_lowest(self) -> Cell:
        while self._open_pq:
            _, _, _, cell = heapq.heappop(self._open_pq)
            if cell not in self._closed_set:
                return cell
            logger.debug("Dropping stale frontier entry for %s", cell)

        self._state = SearchState.EXHAUSTED
        logger.warning(
            "No path from %s to %s after finalizing %d cells",
            self.start, self.destination, len(self._closed_set),
        )
        raise SearchExhausted(f"no path from {self.start} to {self.destination}")

    def _reconstruct_path(self, end: Cell) -> List[Cell]:
        path: List[Cell] = []
        cur = end
        while True:
            path.append(cur)
            if self._dist[cur] == 0:
                break
            cur = self._parent[cur]
        path.reverse()
        return path

    # -------------------- main stepping logic --------------------

    def expand_one(self) -> StepStatus:
        """
        Run ONE A* expansion:
          - Pop the lowest-f cell that is not closed yet and finalize it.
          - If it is the destination, mark the path and finish.
          - Else relax its four neighbours with unit cost.

        Once finished, further calls change nothing: COMPLETE is returned again,
        or SearchExhausted is raised again.
        """
        if self._state is SearchState.SUCCEEDED:
            return StepStatus.COMPLETE
        if self._state is SearchState.EXHAUSTED:
            raise SearchExhausted(f"no path from {self.start} to {self.destination}")

        u = self._pop_lowest()

        assert self._cells[self._index(u)] is not CellState.FINALIZED, f"{u} finalized twice"
        self._mark(u, CellState.FINALIZED)
        self._open_set.discard(u)
        self._closed_set.add(u)
        self._popped += 1

        if u == self.destination:
            self._path = self._reconstruct_path(u)
            for c in self._path:
                self._mark(c, CellState.ON_PATH)
            self._state = SearchState.SUCCEEDED
            logger.info(
                "Reached %s at distance %d after %d expansions",
                u, self._dist[u], self._popped,
            )
            return StepStatus.COMPLETE

        g_u = self._dist[u]
        logger.debug("Expanding %s (g=%d)", u, g_u)
        for v in self._neighbors4(u):
            alt = g_u + 1
            known = self._dist.get(v)
            if known is not None and alt >= known:
                # ties keep the earlier path
                continue
            self._dist[v] = alt
            self._parent[v] = u
            self._mark(v, CellState.DISCOVERED)
            self._push(v, alt)
            self._open_set.add(v)

        return StepStatus.CONTINUING

    # -------------------- queries --------------------

    def grid_view(self) -> GridView:
        return GridView(self._cells, self.height, self.width)

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def done(self) -> bool:
        return self._state is not SearchState.RUNNING

    def distance_to(self, c: Cell) -> Optional[int]:
        """Best-known distance from start, or None if ``c`` was never discovered."""
        return self._dist.get(tuple(c))

    def path(self) -> List[Cell]:
        """Start-to-destination cells once the search succeeded, else []."""
        return list(self._path)

    @property
    def open_cells(self) -> FrozenSet[Cell]:
        return frozenset(self._open_set)

    @property
    def closed_cells(self) -> FrozenSet[Cell]:
        return frozenset(self._closed_set)

    @property
    def frontier_size(self) -> int:
        # includes stale entries
        return len(self._open_pq)

    def metrics(self) -> dict:
        return {
            "popped": self._popped,
            "open_size": len(self._open_set),
            "closed_count": len(self._closed_set),
            "frontier_size": len(self._open_pq),
            "path_len": len(self._path),
            "state": self._state.value,
        }

    def __repr__(self) -> str:
        return (
            f"IncrementalSearch({self.height}x{self.width}, start={self.start}, "
            f"destination={self.destination}, state={self._state.value})"
        )
