# src/slow_astar/app/viewer.py
#!/usr/bin/env python3
"""
Slow A* Viewer — one expansion per key press + metrics panel

- Keyboard:
    [N]          -> single step
    [SPACE]      -> run/pause
    [R]          -> reset (new search on the same map)
    [+]/[-]      -> steps/sec
    [Q]/[ESC]    -> quit
    any other key once the search has finished -> quit

Config (CLI wins over ENV):
- map:   SLOW_ASTAR_MAP=demo|<name in maps/>|<path.json>   --map=...
- speed: SLOW_ASTAR_SPEED=<1..60>                          --speed=...
- log:   SLOW_ASTAR_LOG=DEBUG|INFO|WARNING|...             --log=...
"""

import logging
import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import pygame

from slow_astar.core.engine import GridView, IncrementalSearch
from slow_astar.core.maps import DEMO_MAP, MapSpec, load_map
from slow_astar.core.types import Cell, CellState, SearchExhausted, StepStatus

logger = logging.getLogger(__name__)

# ---------- Config ----------
MAP_DIR = Path(__file__).resolve().parents[1] / "maps"   # shipped as package data
DEFAULT_MAP = "demo"
DEFAULT_SPEED = 8
MIN_SPEED, MAX_SPEED = 1, 60
DEFAULT_LOG_LEVEL = "WARNING"

PANEL_W = 300            # right band: metrics + buttons
GRID_MARGIN = 16
CELL_SIZE_DEFAULT = 50
MIN_CELL_SIZE = 8
FONT_NAME = None  # default pygame font

# Colors
WHITE       = (255,255,255)
BLACK       = (  0,  0,  0)
BLUE        = (  0,  0,255)
MAGENTA     = (255,  0,255)
RED         = (255,  0,  0)
GREEN       = (  0,255,  0)
CYAN        = (  0,255,255)
BG_DARK     = ( 24, 26, 32)

CARD_BG     = (24,28,36,220)
CARD_HI     = (255,255,255,18)
TEXT_LIGHT  = (230,235,240)
ACCENT_GOLD = (255,210,0)

STATE_COLORS: Dict[CellState, Tuple[int, int, int]] = {
    CellState.WALL:       BLUE,
    CellState.UNVISITED:  WHITE,
    CellState.DISCOVERED: MAGENTA,
    CellState.FINALIZED:  RED,
    CellState.ON_PATH:    GREEN,
}


@dataclass
class ViewerSettings:
    map_source: str = DEFAULT_MAP
    steps_per_sec: int = DEFAULT_SPEED
    log_level: str = DEFAULT_LOG_LEVEL


def _clamp_speed(v: int) -> int:
    return int(max(MIN_SPEED, min(MAX_SPEED, v)))


def resolve_settings(argv: Optional[Sequence[str]] = None,
                     environ: Optional[Mapping[str, str]] = None) -> ViewerSettings:
    argv = sys.argv[1:] if argv is None else argv
    environ = os.environ if environ is None else environ

    raw = {
        "map": environ.get("SLOW_ASTAR_MAP", DEFAULT_MAP),
        "speed": environ.get("SLOW_ASTAR_SPEED", str(DEFAULT_SPEED)),
        "log": environ.get("SLOW_ASTAR_LOG", DEFAULT_LOG_LEVEL),
    }
    for arg in argv:
        for key in raw:
            if arg.startswith(f"--{key}="):
                raw[key] = arg.split("=", 1)[1]

    try:
        speed = _clamp_speed(int(raw["speed"]))
    except ValueError:
        logger.warning("Ignoring invalid speed %r, using %d", raw["speed"], DEFAULT_SPEED)
        speed = DEFAULT_SPEED

    level = raw["log"].upper()
    if not isinstance(logging.getLevelName(level), int):
        logger.warning("Ignoring unknown log level %r", raw["log"])
        level = DEFAULT_LOG_LEVEL

    return ViewerSettings(map_source=raw["map"] or DEFAULT_MAP, steps_per_sec=speed, log_level=level)


def resolve_map(source: str) -> MapSpec:
    """``demo``, a file name under maps/ (with or without .json), or a path."""
    if source == DEFAULT_MAP:
        return DEMO_MAP
    for candidate in (MAP_DIR / source, MAP_DIR / f"{source}.json"):
        if candidate.is_file():
            return load_map(candidate)
    return load_map(Path(source))


# ---------- Simple UI Button ----------
class UIButton:
    def __init__(self, label: str, rect: pygame.Rect, callback, *, togglable: bool = False):
        self.label = label
        self.rect = rect
        self.callback = callback
        self.hover = False
        self.togglable = togglable
        self.active = False  # highlight state

    def set_active(self, value: bool):
        self.active = bool(value)

    def draw(self, screen: pygame.Surface, font: pygame.font.Font):
        base = pygame.Surface(self.rect.size, pygame.SRCALPHA)
        bg_idle   = (36, 40, 48, 220)
        bg_hover  = (46, 50, 60, 230)
        bg_active = (58, 86, 160, 235)
        border_active = (120, 170, 255, 255)

        if self.active and self.togglable:
            bg = bg_active
        elif self.hover:
            bg = bg_hover
        else:
            bg = bg_idle

        pygame.draw.rect(base, bg, base.get_rect(), border_radius=10)
        screen.blit(base, self.rect.topleft)

        if self.active and self.togglable:
            pygame.draw.rect(screen, border_active, self.rect, width=2, border_radius=10)

        text = font.render(self.label, True, (235,238,242))
        screen.blit(text, text.get_rect(center=self.rect.center))

    def handle_mouse(self, event: pygame.event.Event):
        if event.type == pygame.MOUSEMOTION:
            self.hover = self.rect.collidepoint(event.pos)
        elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            if self.rect.collidepoint(event.pos):
                self.callback()


# ---------- Viewer ----------
class Viewer:
    def __init__(self, grid: MapSpec, settings: Optional[ViewerSettings] = None):
        pygame.init()
        settings = settings or ViewerSettings()

        self.grid = grid
        self.cell_size = self._auto_cell_size(grid)
        self.font_small = pygame.font.Font(FONT_NAME, 14)
        self.font = pygame.font.Font(FONT_NAME, 18)
        self.font_big = pygame.font.Font(FONT_NAME, 22)

        grid_px_w = GRID_MARGIN*2 + grid.width  * self.cell_size
        grid_px_h = GRID_MARGIN*2 + grid.height * self.cell_size
        win_w = grid_px_w + PANEL_W
        win_h = max(grid_px_h, 480)

        self.screen = pygame.display.set_mode((win_w, win_h), pygame.RESIZABLE)
        pygame.display.set_caption(f"Slow A* — {grid.name}")

        self._buttons: List[UIButton] = []

        self.alive = True
        self.running = False
        self.clock = pygame.time.Clock()
        self.steps_per_sec = _clamp_speed(settings.steps_per_sec)
        self.state = "Idle"
        self._last_step_t = 0.0

        self.search: IncrementalSearch = grid.make_search()
        self.view: GridView = self.search.grid_view()
        self._last_metrics = self.search.metrics()

        self._layout(win_w, win_h)

    # ---------- layout ----------
    def _layout(self, win_w: int, win_h: int):
        """Compute integer cell_size that fits window and place the grid left of the panel."""
        avail_w = max(1, win_w - PANEL_W - 2 * GRID_MARGIN)
        avail_h = max(1, win_h - 2 * GRID_MARGIN)

        cs_by_w = avail_w // self.grid.width
        cs_by_h = avail_h // self.grid.height
        self.cell_size = int(max(MIN_CELL_SIZE, min(cs_by_w, cs_by_h)))

        grid_plate_w = self.grid.width  * self.cell_size + 2 * GRID_MARGIN
        grid_plate_h = self.grid.height * self.cell_size + 2 * GRID_MARGIN
        top_y = max(0, (win_h - grid_plate_h) // 2)

        self.canvas_rect = pygame.Rect(0, top_y, grid_plate_w, grid_plate_h)
        self._grid_origin = (self.canvas_rect.x + GRID_MARGIN,
                             self.canvas_rect.y + GRID_MARGIN)
        self._right_band = pygame.Rect(self.canvas_rect.right, 0,
                                       max(PANEL_W, win_w - self.canvas_rect.right),
                                       win_h)
        self._build_buttons()

    def _auto_cell_size(self, grid: MapSpec) -> int:
        target_h = 720 - GRID_MARGIN*2
        return max(MIN_CELL_SIZE, min(CELL_SIZE_DEFAULT, target_h // grid.height))

    @property
    def finished(self) -> bool:
        return self.state in ("Done", "No path")

    def run(self, max_frames: Optional[int] = None):
        frames = 0
        while self.alive:
            self._handle_events()
            if self.running:
                self._tick_algorithm()
            self._draw()
            self.clock.tick(60)
            frames += 1
            if max_frames is not None and frames >= max_frames:
                break
        pygame.quit()

    def _tick_algorithm(self):
        t0 = time.time()
        step_interval = 1.0 / max(1, self.steps_per_sec)
        if t0 - self._last_step_t >= step_interval:
            self._last_step_t = t0
            self._do_step()

    def _do_step(self):
        if self.finished:
            return
        try:
            status = self.search.expand_one()
        except SearchExhausted as ex:
            logger.info("Search finished without a path: %s", ex)
            self.state = "No path"; self.running = False
        else:
            if status is StepStatus.COMPLETE:
                self.state = "Done"; self.running = False
            else:
                self.state = "Running" if self.running else "Idle"
        self.view = self.search.grid_view()
        self._last_metrics = self.search.metrics()
        self._refresh_active_states()

    def _quit(self):
        self.alive = False
        self.running = False

    def _handle_events(self):
        for e in pygame.event.get():
            if e.type == pygame.QUIT:
                self._quit()
            elif e.type == pygame.KEYDOWN:
                if e.key in (pygame.K_ESCAPE, pygame.K_q):
                    self._quit()
                elif e.key == pygame.K_r:
                    self._reset()
                elif self.finished:
                    self._quit()
                elif e.key == pygame.K_SPACE:
                    self._toggle_run()
                elif e.key == pygame.K_n:
                    self._do_step()
                elif e.key in (pygame.K_PLUS, pygame.K_EQUALS, pygame.K_KP_PLUS):
                    self._bump_speed(+1)
                elif e.key in (pygame.K_MINUS, pygame.K_UNDERSCORE, pygame.K_KP_MINUS):
                    self._bump_speed(-1)
            elif e.type == pygame.VIDEORESIZE:
                self.screen = pygame.display.set_mode((e.w, e.h), pygame.RESIZABLE)
                self._layout(e.w, e.h)
            elif e.type in (pygame.MOUSEMOTION, pygame.MOUSEBUTTONDOWN):
                for b in self._buttons:
                    b.handle_mouse(e)

    def _reset(self):
        self.running = False
        self.state = "Idle"
        self.search = self.grid.make_search()
        self.view = self.search.grid_view()
        self._last_metrics = self.search.metrics()
        self._refresh_active_states()

    # ---------- drawing ----------
    def _draw(self):
        self.screen.fill(BG_DARK)
        self._draw_grid()
        self._draw_metrics_and_buttons()
        pygame.display.flip()

    def _draw_grid(self):
        cs = self.cell_size
        ox, oy = self._grid_origin

        for row, cells in enumerate(self.view):
            for col, cell in enumerate(cells):
                rect = pygame.Rect(ox + col*cs, oy + row*cs, cs, cs)
                pygame.draw.rect(self.screen, STATE_COLORS[cell], rect)
                pygame.draw.rect(self.screen, CYAN, rect, 1)

        self._draw_badge(self.grid.start, "S")
        self._draw_badge(self.grid.destination, "D")

    def _draw_badge(self, cell: Cell, label: str):
        cs = self.cell_size
        ox, oy = self._grid_origin
        row, col = cell
        cx = ox + col*cs + cs//2
        cy = oy + row*cs + cs//2
        txt = self.font_small.render(label, True, BLACK)
        self.screen.blit(txt, txt.get_rect(center=(cx, cy)))

    # ---------- buttons + metrics ----------
    def _build_buttons(self):
        self._buttons.clear()
        rb = self._right_band
        x = rb.x + 16
        y = rb.y + 230  # leaves space for metrics card above
        w = max(160, rb.width - 32)
        h = 38
        gap = 10

        self.btn_run = UIButton("Run / Pause", pygame.Rect(x, y, w, h), self._toggle_run, togglable=True)
        y += h + gap
        self.btn_step = UIButton("Step Once", pygame.Rect(x, y, w, h), self._do_step)
        y += h + gap
        self.btn_reset = UIButton("Reset", pygame.Rect(x, y, w, h), self._reset)
        y += h + gap

        half = (w - 8) // 2
        self.btn_speed_minus = UIButton("Speed -", pygame.Rect(x, y, half, h), lambda: self._bump_speed(-1))
        self.btn_speed_plus  = UIButton("Speed +", pygame.Rect(x + half + 8, y, half, h), lambda: self._bump_speed(+1))

        self._buttons.extend([self.btn_run, self.btn_step, self.btn_reset,
                              self.btn_speed_minus, self.btn_speed_plus])
        self._refresh_active_states()

    def _refresh_active_states(self):
        if hasattr(self, "btn_run"):
            self.btn_run.set_active(self.running)

    def _toggle_run(self):
        if self.finished:
            return
        self.running = not self.running
        self.state = "Running" if self.running else "Paused"
        self._refresh_active_states()

    def _bump_speed(self, dv: int):
        self.steps_per_sec = _clamp_speed(self.steps_per_sec + dv)

    def _draw_metrics_and_buttons(self):
        rb = self._right_band

        card_h = 210
        card = pygame.Surface((rb.width - 20, card_h), pygame.SRCALPHA)
        pygame.draw.rect(card, CARD_BG, card.get_rect(), border_radius=14)
        hi = pygame.Surface((card.get_width(), 24), pygame.SRCALPHA)
        pygame.draw.rect(hi, CARD_HI, hi.get_rect(), border_radius=14)
        card.blit(hi, (0,0))
        self.screen.blit(card, (rb.x + 10, rb.y + 10))

        x0 = rb.x + 24
        y0 = rb.y + 18

        def line(text, big=False, color=TEXT_LIGHT):
            nonlocal y0
            f = self.font_big if big else self.font
            surf = f.render(text, True, color)
            self.screen.blit(surf, (x0, y0))
            y0 += surf.get_height() + 6

        m = self._last_metrics
        line("Metrics", big=True, color=ACCENT_GOLD)
        line(f"Popped: {m.get('popped', 0)}")
        line(f"Open: {m.get('open_size', 0)}")
        line(f"Closed: {m.get('closed_count', 0)}")
        line(f"Path Len: {m.get('path_len', 0)}")
        line("-" * 26)
        line(f"State: {self.state}")
        line(f"Speed: {self.steps_per_sec} steps/s")

        for b in self._buttons:
            b.draw(self.screen, self.font)


# ---------- main ----------
def main(argv: Optional[Sequence[str]] = None) -> int:
    settings = resolve_settings(argv)
    logging.basicConfig(level=settings.log_level,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        grid = resolve_map(settings.map_source)
    except (OSError, ValueError) as ex:
        logger.error("Failed to load map %s: %s", settings.map_source, ex)
        return 1
    Viewer(grid, settings).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
