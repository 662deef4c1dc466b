"""Summary statistics over the whole series."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from energymon.series import Record


@dataclass(frozen=True)
class Summary:
    minimum: float
    maximum: float
    average: float


@dataclass(frozen=True)
class Statistics:
    """Derived on every render; never stored."""

    count: int
    current: Summary
    power: Summary
    first_timestamp: datetime
    last_timestamp: datetime
    duration_minutes: float


def _summarize(values: list[float]) -> Summary:
    lo = hi = values[0]
    total = 0.0
    for v in values:
        if v < lo:
            lo = v
        if v > hi:
            hi = v
        total += v
    return Summary(minimum=lo, maximum=hi, average=total / len(values))


def aggregate(records: Sequence[Record]) -> Statistics | None:
    """Compute statistics, or None when there is nothing to aggregate."""
    if not records:
        return None

    first = records[0]
    last = records[-1]
    return Statistics(
        count=len(records),
        current=_summarize([r.current_amperes for r in records]),
        power=_summarize([r.power_watts for r in records]),
        first_timestamp=first.timestamp,
        last_timestamp=last.timestamp,
        duration_minutes=(last.timestamp - first.timestamp).total_seconds() / 60,
    )
