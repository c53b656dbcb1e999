# tests/conftest.py
import os

# headless pygame for the viewer tests
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

from collections import deque
from typing import List, Optional

import pytest

from slow_astar.core.engine import IncrementalSearch
from slow_astar.core.types import Cell, SearchExhausted, StepStatus


def bfs_distance(passable: List[List[bool]], start: Cell, dest: Cell) -> Optional[int]:
    """Brute-force 4-neighbour shortest path length, None if unreachable."""
    h, w = len(passable), len(passable[0])
    dist = {start: 0}
    q = deque([start])
    while q:
        r, c = q.popleft()
        if (r, c) == dest:
            return dist[(r, c)]
        for dr, dc in ((-1, 0), (1, 0), (0, -1), (0, 1)):
            n = (r + dr, c + dc)
            if 0 <= n[0] < h and 0 <= n[1] < w and passable[n[0]][n[1]] and n not in dist:
                dist[n] = dist[(r, c)] + 1
                q.append(n)
    return None


def run_to_end(search: IncrementalSearch, limit: int = 100_000):
    """Step until COMPLETE or SearchExhausted; returns (outcome, steps)."""
    steps = 0
    while steps < limit:
        steps += 1
        try:
            if search.expand_one() is StepStatus.COMPLETE:
                return "complete", steps
        except SearchExhausted:
            return "exhausted", steps
    raise AssertionError(f"search did not finish in {limit} steps")


@pytest.fixture
def open_3x3():
    return [[True] * 3 for _ in range(3)]


@pytest.fixture
def walled_off():
    # start in the left pocket, destination in the right pocket
    return [
        [True,  False, True],
        [True,  False, True],
        [True,  False, True],
    ]
