"""View state for the bar chart window and the table selection."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from energymon.series import Record

BAR_WIDTH = 3  # display columns per bar
BAR_GAP = 1  # display columns between groups
GROUP_WIDTH = BAR_WIDTH * 2 + BAR_GAP  # power + current bar per group


@dataclass
class WindowState:
    """Scroll position of the bar chart. offset 0 is the most recent group."""

    offset: int = 0
    visible_count: int = 0

    def scroll(self, delta: int) -> None:
        """Move towards older (positive) or newer (negative) groups.

        Clamping happens on the next compute_window, once the width is known.
        """
        self.offset = max(0, self.offset + delta)


def visible_groups(display_width: int) -> int:
    return max(0, display_width) // GROUP_WIDTH


def newest_first(records: Sequence[Record]) -> list[Record]:
    """Timestamp-descending ordering; equal timestamps keep the latest arrival first."""
    return sorted(reversed(records), key=lambda r: r.timestamp, reverse=True)


def compute_window(
    records: Sequence[Record], display_width: int, state: WindowState
) -> list[Record]:
    """Return the visible slice of the newest-first ordering and clamp the offset.

    Runs every frame: a terminal resize changes visible_count even though the
    offset is kept between frames.
    """
    ordered = newest_first(records)
    state.visible_count = visible_groups(display_width)
    max_offset = max(0, len(ordered) - state.visible_count)
    state.offset = min(max(state.offset, 0), max_offset)
    return ordered[state.offset : state.offset + state.visible_count]


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def bar_values(record: Record) -> tuple[int, int]:
    """Integer bar heights: watts, and amperes x100 to keep two decimals."""
    return (
        _round_half_away(record.power_watts),
        _round_half_away(record.current_amperes * 100),
    )


@dataclass
class SelectionState:
    """Highlighted table row, an index into the arrival-ordered series."""

    selected: int | None = None

    def select_initial(self, records: Sequence[Record]) -> None:
        self.selected = 0 if records else None

    def ensure_selected(self, records: Sequence[Record]) -> None:
        """Select the first row once an initially empty series gets data."""
        if self.selected is None and records:
            self.selected = 0

    def move_selection(self, delta: int, length: int) -> None:
        """Move by *delta* rows, wrapping around both ends."""
        if self.selected is None or length <= 0:
            return
        # Python's % is non-negative for a positive modulus, so negative
        # deltas wrap the same way positive ones do.
        self.selected = (self.selected + delta) % length
