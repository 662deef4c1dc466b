"""Interactive terminal dashboard for a single current sensor.

Shows a bar chart of the most recent readings (power and current per group),
a scrollable table of every reading and a statistics panel, using curses.
The latest reading is re-fetched in the background every minute.

Usage:
    uv run energymon
    uv run energymon --url https://example.invalid/exec --log-file energymon.log
"""

from __future__ import annotations

import argparse
import curses
import logging
import queue
import sys
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from energymon.config import dump_default_config, load_config
from energymon.series import Record, Series, normalize
from energymon.source import FetchError, RawReading, ReadingSource
from energymon.stats import Statistics, aggregate
from energymon.views import (
    BAR_WIDTH,
    GROUP_WIDTH,
    SelectionState,
    WindowState,
    bar_values,
    compute_window,
)

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────────

REFRESH_INTERVAL = 60.0  # seconds between background fetches
POLL_TIMEOUT_MS = 100  # input poll per loop iteration

MIN_ROWS = 12
MIN_COLS = 40

BAR_FILL = "█"

# Curses colour-pair IDs
C_NORMAL = 1
C_POWER = 2
C_CURRENT = 3
C_TITLE = 4
C_DIM = 5
C_ERROR = 6


# ── Colour helpers ─────────────────────────────────────────────────────────


def _init_colors() -> None:
    curses.start_color()
    curses.use_default_colors()
    curses.init_pair(C_NORMAL, curses.COLOR_GREEN, -1)
    curses.init_pair(C_POWER, curses.COLOR_BLUE, -1)
    curses.init_pair(C_CURRENT, curses.COLOR_YELLOW, -1)
    curses.init_pair(C_TITLE, curses.COLOR_CYAN, -1)
    curses.init_pair(C_DIM, curses.COLOR_WHITE, -1)
    curses.init_pair(C_ERROR, curses.COLOR_RED, -1)


# ── Background refresh ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of one background fetch: a reading or an error message."""

    reading: RawReading | None = None
    error: str | None = None


class Refresher:
    """Runs one fetch at a time on a worker thread.

    Results land in a single-slot queue that the dashboard drains without
    blocking, so a slow endpoint never stalls rendering or input.
    """

    def __init__(self, fetch: Callable[[], RawReading]) -> None:
        self._fetch = fetch
        self._results: queue.Queue[RefreshResult] = queue.Queue(maxsize=1)
        self._busy = threading.Event()

    @property
    def in_flight(self) -> bool:
        return self._busy.is_set()

    def start(self) -> bool:
        """Start a fetch unless one is already running."""
        if self._busy.is_set():
            return False
        self._busy.set()
        worker = threading.Thread(
            target=self._run, name="energymon-refresh", daemon=True
        )
        worker.start()
        return True

    def _run(self) -> None:
        try:
            try:
                result = RefreshResult(reading=self._fetch())
            except FetchError as e:
                result = RefreshResult(error=str(e))
            self._results.put(result)
        finally:
            self._busy.clear()

    def poll(self) -> RefreshResult | None:
        try:
            return self._results.get_nowait()
        except queue.Empty:
            return None


# ── Formatting helpers ─────────────────────────────────────────────────────


def fmt_power(watts: float) -> str:
    return f"{watts:.2f} W"


def fmt_current(amperes: float) -> str:
    return f"{amperes:.2f} A"


def fmt_duration(minutes: float) -> str:
    """Human-readable span: ``42.5 min`` below an hour, ``2h 05m`` above."""
    if abs(minutes) < 60:
        return f"{minutes:.1f} min"
    sign = "-" if minutes < 0 else ""
    total = int(abs(minutes))
    return f"{sign}{total // 60}h {total % 60:02d}m"


def table_start(selected: int | None, total: int, rows: int) -> int:
    """First table row to draw so that the selected row stays visible."""
    if selected is None or rows <= 0 or total <= rows:
        return 0
    return min(max(0, selected - rows + 1), total - rows)


def bar_height(value: int, max_value: int, rows: int) -> int:
    """Rows filled by a bar of *value* when *max_value* fills all *rows*."""
    if value <= 0 or max_value <= 0 or rows <= 0:
        return 0
    return min(rows, max(1, round(value / max_value * rows)))


# ── Curses drawing primitives ──────────────────────────────────────────────


def _safe(win: curses.window, *args: Any) -> None:
    """addstr wrapper that swallows out-of-bounds errors."""
    try:
        win.addstr(*args)
    except curses.error:
        pass


def _draw_box(
    win: curses.window,
    y: int,
    x: int,
    h: int,
    w: int,
    title: str = "",
) -> curses.window | None:
    """Draw a bordered box and return the inner sub-window."""
    max_y, max_x = win.getmaxyx()
    h = min(h, max_y - y)
    w = min(w, max_x - x)
    if h < 3 or w < 4:
        return None
    try:
        sub = win.subwin(h, w, y, x)
        sub.box()
        if title and len(title) + 4 < w:
            sub.addstr(
                0, 2, f" {title} ", curses.color_pair(C_TITLE) | curses.A_BOLD
            )
        return sub
    except curses.error:
        return None


# ── Panel renderers ────────────────────────────────────────────────────────


def draw_chart_panel(
    win: curses.window,
    y: int,
    x: int,
    w: int,
    h: int,
    records: Sequence[Record],
    window: WindowState,
) -> None:
    box = _draw_box(win, y, x, h, w, "Power (W) / Current (A x100)")
    if not box:
        return

    groups = compute_window(records, w - 2, window)
    if not records:
        _safe(box, 1, 2, "no data yet", curses.color_pair(C_DIM))
        return
    if not groups:
        return

    # Bottom inner row holds the time labels
    rows = h - 3
    label_row = h - 2
    if rows < 1:
        return

    values = [bar_values(r) for r in groups]
    peak = max(max(p, c) for p, c in values)

    for i, (record, (power, current)) in enumerate(zip(groups, values)):
        gx = 1 + i * GROUP_WIDTH
        for col, value, color in (
            (gx, power, C_POWER),
            (gx + BAR_WIDTH, current, C_CURRENT),
        ):
            filled = bar_height(value, peak, rows)
            for r in range(filled):
                _safe(
                    box,
                    label_row - 1 - r,
                    col,
                    BAR_FILL * BAR_WIDTH,
                    curses.color_pair(color),
                )
        label = record.timestamp.strftime("%H:%M")
        _safe(box, label_row, gx, label[: GROUP_WIDTH - 1], curses.color_pair(C_DIM))

    if window.offset:
        hint = f" +{window.offset} newer "
        _safe(box, 0, max(2, w - len(hint) - 2), hint, curses.color_pair(C_DIM))


def draw_table_panel(
    win: curses.window,
    y: int,
    x: int,
    w: int,
    h: int,
    records: Sequence[Record],
    selection: SelectionState,
) -> None:
    box = _draw_box(win, y, x, h, w, "Readings")
    if not box:
        return
    row = 1

    hdr = f" {'TIME':8s}  {'POWER':>12s}  {'CURRENT':>10s}"
    _safe(box, row, 1, hdr[: w - 3], curses.color_pair(C_TITLE) | curses.A_BOLD)
    row += 1

    if not records:
        _safe(box, row, 2, "no data yet", curses.color_pair(C_DIM))
        return

    visible = h - 3
    start = table_start(selection.selected, len(records), visible)
    for i in range(start, min(len(records), start + visible)):
        rec = records[i]
        line = (
            f" {rec.timestamp:%H:%M:%S}  {fmt_power(rec.power_watts):>12s}"
            f"  {fmt_current(rec.current_amperes):>10s}"
        )
        attr = curses.color_pair(C_NORMAL)
        if i == selection.selected:
            attr |= curses.A_REVERSE | curses.A_BOLD
        _safe(box, row, 1, line.ljust(w - 3)[: w - 3], attr)
        row += 1


def draw_stats_panel(
    win: curses.window,
    y: int,
    x: int,
    w: int,
    h: int,
    stats: Statistics | None,
) -> None:
    box = _draw_box(win, y, x, h, w, "Statistics")
    if not box:
        return

    if stats is None:
        _safe(box, 1, 2, "no data yet", curses.color_pair(C_DIM))
        return

    lines: list[tuple[str, int]] = [
        (f"Readings  {stats.count}", C_NORMAL),
        ("", C_DIM),
        ("Current", C_CURRENT),
        (
            f"  min {fmt_current(stats.current.minimum)}"
            f"  max {fmt_current(stats.current.maximum)}"
            f"  avg {fmt_current(stats.current.average)}",
            C_DIM,
        ),
        ("Power", C_POWER),
        (
            f"  min {fmt_power(stats.power.minimum)}"
            f"  max {fmt_power(stats.power.maximum)}"
            f"  avg {fmt_power(stats.power.average)}",
            C_DIM,
        ),
        ("", C_DIM),
        (f"First     {stats.first_timestamp:%Y-%m-%d %H:%M:%S}", C_DIM),
        (f"Last      {stats.last_timestamp:%Y-%m-%d %H:%M:%S}", C_DIM),
        (f"Duration  {fmt_duration(stats.duration_minutes)}", C_NORMAL),
    ]
    for row, (text, color) in enumerate(lines[: h - 2], start=1):
        if text:
            _safe(box, row, 2, text[: w - 4], curses.color_pair(color))


# ── Dashboard ──────────────────────────────────────────────────────────────


class RunState(Enum):
    RUNNING = "running"
    EXITING = "exiting"


class Dashboard:
    """Owns the series and view state and runs the render/input/refresh loop."""

    def __init__(
        self,
        series: Series,
        refresher: Refresher,
        clock: Callable[[], float] = time.monotonic,
        interval: float = REFRESH_INTERVAL,
    ) -> None:
        self.series = series
        self.window = WindowState()
        self.selection = SelectionState()
        self.selection.select_initial(series.all())
        self.state = RunState.RUNNING
        self.last_update: str | None = None
        self.last_error: str | None = None
        self.too_small = False
        self._refresher = refresher
        self._clock = clock
        self._interval = interval
        self._last_refresh = clock()

    # ── Input ──────────────────────────────────────────────────────────────

    def handle_key(self, key: int) -> None:
        if key == ord("q"):
            self.state = RunState.EXITING
        elif key == curses.KEY_DOWN:
            self.selection.move_selection(+1, len(self.series))
        elif key == curses.KEY_UP:
            self.selection.move_selection(-1, len(self.series))
        elif key == curses.KEY_LEFT:
            self.window.scroll(-1)
        elif key == curses.KEY_RIGHT:
            self.window.scroll(+1)

    # ── Refresh ────────────────────────────────────────────────────────────

    def drain_refresh(self) -> None:
        """Apply a completed background fetch, if one is waiting."""
        result = self._refresher.poll()
        if result is None:
            return
        stamp = time.strftime("%H:%M:%S")
        if result.error is not None or result.reading is None:
            logger.warning("Refresh failed: %s", result.error)
            self.last_error = stamp
            return

        self.last_error = None
        self.last_update = stamp
        record = normalize(result.reading)
        if record is None:
            logger.debug("Dropping unparseable reading: %r", result.reading)
            return
        if self.series.append_if_new(record):
            logger.debug("Appended reading at %s", record.timestamp.isoformat())
            self.selection.ensure_selected(self.series.all())
        else:
            logger.debug("Latest reading unchanged")

    def maybe_refresh(self) -> None:
        """Start a background fetch once the refresh interval has elapsed."""
        now = self._clock()
        if now - self._last_refresh < self._interval:
            return
        if self._refresher.start():
            logger.debug("Refresh started")
        else:
            logger.debug("Previous refresh still running, skipping")
        self._last_refresh = now

    def step(self, key: int) -> None:
        """Everything that follows the input poll in one loop iteration.

        While the last frame only showed the too-small message, every key but
        quit is dropped; refreshes keep running.
        """
        if not self.too_small or key == ord("q"):
            self.handle_key(key)
        self.drain_refresh()
        self.maybe_refresh()

    # ── Rendering ──────────────────────────────────────────────────────────

    def _draw_header(self, win: curses.window, w: int) -> None:
        ts = time.strftime("%H:%M:%S")
        attr = curses.color_pair(C_TITLE) | curses.A_REVERSE
        _safe(win, 0, 0, " " * (w - 1), attr)
        _safe(win, 0, 1, "energymon", attr | curses.A_BOLD)
        hint = "q quit  ↑↓ select  ←→ scroll"
        _safe(win, 0, max(0, w - len(hint) - 2), hint, attr)

        if self.last_error is not None:
            status = f"{ts}  refresh failed {self.last_error}"
            status_attr = curses.color_pair(C_ERROR) | curses.A_REVERSE
        elif self.last_update is not None:
            status = f"{ts}  updated {self.last_update}"
            status_attr = attr
        else:
            status = ts
            status_attr = attr
        _safe(win, 0, max(11, (w - len(status)) // 2), status, status_attr)

    def draw(self, stdscr: curses.window) -> None:
        max_y, max_x = stdscr.getmaxyx()
        stdscr.erase()

        self.too_small = max_y < MIN_ROWS or max_x < MIN_COLS
        if self.too_small:
            _safe(stdscr, 0, 0, f"Terminal too small (need {MIN_COLS}x{MIN_ROWS}+)")
            stdscr.refresh()
            return

        records = self.series.all()
        self._draw_header(stdscr, max_x)

        chart_h = (max_y - 1) // 2
        draw_chart_panel(stdscr, 1, 0, max_x, chart_h, records, self.window)

        bottom_y = 1 + chart_h
        bottom_h = max_y - bottom_y
        col_w = max_x // 2
        draw_table_panel(
            stdscr, bottom_y, 0, col_w, bottom_h, records, self.selection
        )
        draw_stats_panel(
            stdscr, bottom_y, col_w, max_x - col_w, bottom_h, aggregate(records)
        )

        stdscr.refresh()

    # ── Main loop ──────────────────────────────────────────────────────────

    def run(self, stdscr: curses.window) -> None:
        _init_colors()
        curses.curs_set(0)
        stdscr.timeout(POLL_TIMEOUT_MS)

        while self.state is RunState.RUNNING:
            self.draw(stdscr)
            key = stdscr.getch()
            if key == curses.KEY_RESIZE:
                stdscr.clear()
            self.step(key)


# ── CLI entry point ────────────────────────────────────────────────────────


def _setup_logging(log_file: str | None, level: str) -> None:
    """Log to a file when asked; never to the terminal curses is drawing on.

    Raises:
        SystemExit: If *level* is not a logging level name.
    """
    levels = logging.getLevelNamesMapping()
    if level.upper() not in levels:
        print(
            f"energymon: invalid log_level {level!r} "
            f"(expected one of {', '.join(sorted(levels))})",
            file=sys.stderr,
        )
        raise SystemExit(1)

    if log_file:
        logging.basicConfig(
            filename=log_file,
            level=levels[level.upper()],
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    else:
        logging.basicConfig(handlers=[logging.NullHandler()])


def load_initial(source: ReadingSource) -> Series:
    """Fetch the full history; failure here is fatal to startup."""
    try:
        raws = source.get_all_readings()
    except FetchError as e:
        print(f"energymon: failed to load readings: {e}", file=sys.stderr)
        raise SystemExit(1) from e

    series = Series()
    added = series.extend_normalized(raws)
    logger.info("Loaded %d of %d readings", added, len(raws))
    return series


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Live terminal dashboard for a current sensor feed.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        metavar="PATH",
        help="Path to TOML config file",
    )
    parser.add_argument(
        "--url",
        default=None,
        help="Reading endpoint URL (overrides source.url)",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        metavar="PATH",
        help="Write logs to this file (overrides log_file)",
    )
    parser.add_argument(
        "--dump-config",
        action="store_true",
        help="Print the default configuration and exit",
    )
    args = parser.parse_args(argv)

    if args.dump_config:
        print(dump_default_config(), end="")
        return

    config = load_config(args.config)
    _setup_logging(
        args.log_file or config.get("log_file"), str(config.get("log_level", "INFO"))
    )

    source_cfg: dict[str, Any] = config["source"]
    source = ReadingSource(
        args.url or str(source_cfg["url"]),
        timeout=float(source_cfg.get("timeout", 10.0)),
    )
    series = load_initial(source)

    dashboard = Dashboard(series, Refresher(source.get_last_reading))
    try:
        curses.wrapper(dashboard.run)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
