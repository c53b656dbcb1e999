# src/slow_astar/core/types.py
#!/usr/bin/env python3
from enum import Enum
from typing import Optional, Tuple

Cell = Tuple[int, int]  # (row, col)


class CellState(Enum):
    WALL = "wall"
    UNVISITED = "unvisited"
    DISCOVERED = "discovered"   # in the frontier, cost may still improve
    FINALIZED = "finalized"     # popped as the minimum, distance is optimal
    ON_PATH = "on_path"         # overlay on finalized cells after success


class StepStatus(Enum):
    CONTINUING = "continuing"
    COMPLETE = "complete"


class SearchState(Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


# -------------------- errors --------------------

class SearchError(Exception):
    """Base class for everything the search package raises on purpose."""


class EmptyGridError(SearchError, ValueError):
    """Grid has no rows, no columns, or rows of different lengths."""


class InvalidCoordinateError(SearchError, ValueError):
    def __init__(self, cell, height: int, width: int, what: Optional[str] = None,
                 reason: Optional[str] = None):
        self.cell = cell
        self.height = height
        self.width = width
        label = what or "cell"
        reason = reason or f"is outside a {height}x{width} grid"
        super().__init__(f"{label} {cell!r} {reason}")


class SearchExhausted(SearchError):
    """The frontier ran dry before the destination was finalized: no path exists."""


class MapFormatError(SearchError, ValueError):
    """A map file or ASCII layout could not be turned into a grid."""
