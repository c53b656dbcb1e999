# src/slow_astar/core/maps.py
#!/usr/bin/env python3
"""
Map sources for the search: JSON map files, ASCII layouts, and the demo map.

JSON layout (cells are [row][col], 1 = wall, anything else = open):
    {"name": "...", "width": W, "height": H,
     "start": [row, col], "goal": [row, col], "cells": [[0, 1, ...], ...]}

ASCII layout:
    '#' wall, '.' open, 'S' start, 'D' destination
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from slow_astar.core.engine import IncrementalSearch
from slow_astar.core.types import Cell, MapFormatError

logger = logging.getLogger(__name__)

WALL_CHAR = "#"
OPEN_CHAR = "."
START_CHAR = "S"
DEST_CHAR = "D"


@dataclass
class MapSpec:
    name: str
    passable: List[List[bool]]   # [row][col], True = traversable
    start: Cell
    destination: Cell

    @property
    def height(self) -> int:
        return len(self.passable)

    @property
    def width(self) -> int:
        return len(self.passable[0]) if self.passable else 0

    def make_search(self) -> IncrementalSearch:
        return IncrementalSearch(self.passable, self.start, self.destination)


def _cell(raw, what: str) -> Cell:
    try:
        r, c = raw
    except (TypeError, ValueError):
        raise MapFormatError(f"{what} must be a [row, col] pair, got {raw!r}") from None
    if not (isinstance(r, int) and isinstance(c, int)):
        raise MapFormatError(f"{what} must hold integers, got {raw!r}")
    return (r, c)


def _size(raw, what: str) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise MapFormatError(f"{what} must be an integer, got {raw!r}") from None


def _check_in_bounds(cell: Cell, height: int, width: int, what: str) -> None:
    r, c = cell
    if not (0 <= r < height and 0 <= c < width):
        raise MapFormatError(f"{what} {cell} out of bounds for {height}x{width} map")


def load_map(path: Union[str, Path]) -> MapSpec:
    path = Path(path)
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as ex:
        raise MapFormatError(f"{path}: not valid JSON ({ex})") from ex

    if not isinstance(data, dict):
        raise MapFormatError(f"{path}: top level must be an object")
    try:
        width = _size(data["width"], "width")
        height = _size(data["height"], "height")
        cells = data["cells"]
        start = _cell(data["start"], "start")
        goal = _cell(data["goal"], "goal")
    except KeyError as ex:
        raise MapFormatError(f"{path}: missing key {ex}") from ex

    if not isinstance(cells, list) or not all(isinstance(row, list) for row in cells):
        raise MapFormatError(f"{path}: cells must be a list of rows")
    if len(cells) != height or not all(len(row) == width for row in cells):
        raise MapFormatError(f"{path}: cells size mismatch, expected {height}x{width}")
    if height == 0 or width == 0:
        raise MapFormatError(f"{path}: empty map")
    _check_in_bounds(start, height, width, "start")
    _check_in_bounds(goal, height, width, "goal")

    passable = [[v != 1 for v in row] for row in cells]
    name = str(data.get("name", path.stem))
    logger.info("Loaded map %s (%dx%d) from %s", name, height, width, path)
    return MapSpec(name, passable, start, goal)


def parse_ascii(text: str, name: str = "ascii") -> MapSpec:
    """Build a map from rows of '#', '.', 'S' and 'D'. Blank lines are ignored."""
    rows = [line.strip() for line in text.strip().splitlines() if line.strip()]
    if not rows:
        raise MapFormatError("empty layout")
    width = len(rows[0])

    passable: List[List[bool]] = []
    start: Optional[Cell] = None
    dest: Optional[Cell] = None
    for r, line in enumerate(rows):
        if len(line) != width:
            raise MapFormatError(f"row {r} has {len(line)} cells, expected {width}")
        row: List[bool] = []
        for c, ch in enumerate(line):
            if ch == START_CHAR:
                if start is not None:
                    raise MapFormatError(f"second start at {(r, c)}")
                start = (r, c)
            elif ch == DEST_CHAR:
                if dest is not None:
                    raise MapFormatError(f"second destination at {(r, c)}")
                dest = (r, c)
            elif ch not in (WALL_CHAR, OPEN_CHAR):
                raise MapFormatError(f"unknown cell {ch!r} at {(r, c)}")
            row.append(ch != WALL_CHAR)
        passable.append(row)

    if start is None or dest is None:
        raise MapFormatError("layout needs one 'S' and one 'D'")
    return MapSpec(name, passable, start, dest)


# 12x12 demo: walled border, start (2,2), destination (10,10)
DEMO_MAP = parse_ascii(
    """
    ############
    #..........#
    #.S.....##.#
    #......#...#
    #......#.###
    #.#....#...#
    #...#..###.#
    #...####...#
    #...#....###
    #...#.##...#
    #.......#.D#
    ############
    """,
    name="demo",
)
