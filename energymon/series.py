"""Normalized records and the append-only series that holds them."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime, timezone

from energymon.source import RawReading

logger = logging.getLogger(__name__)

VOLTAGE = 220.0  # volts, fixed mains voltage

_BASE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# YYYY-MM-DDTHH:MM:SS[.frac](Z|+HH:MM|-HH:MM)
_RFC3339 = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[Tt ]\d{2}:\d{2}:\d{2})"
    r"(?:\.\d+)?(?:[Zz]|[+-]\d{2}:\d{2})$"
)
# YYYY-MM-DDTHH:MM:SS[.frac]Z, at most nine fraction digits
_ZULU_TIME = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(?P<frac>\d{1,9}))?Z$"
)


@dataclass(frozen=True)
class Record:
    """A normalized observation. Equality is structural over all fields."""

    power_watts: float
    current_amperes: float
    timestamp: datetime


def _parse_date(value: str):
    """Date part of an RFC3339 datetime, in the value's own offset."""
    m = _RFC3339.match(value)
    if m is None:
        return None
    try:
        # The fraction never affects the date, but the clock fields must be valid
        parsed = datetime.strptime(m["base"].upper().replace(" ", "T"), _BASE_FORMAT)
    except ValueError:
        return None
    return parsed.date()


def _parse_time_of_day(value: str):
    """Time-of-day of a ``...THH:MM:SS[.fraction]Z`` value.

    The fraction is optional and may carry up to nine digits; anything past
    microseconds is truncated.
    """
    m = _ZULU_TIME.match(value)
    if m is None:
        return None
    try:
        parsed = datetime.strptime(m["base"], _BASE_FORMAT)
    except ValueError:
        return None
    micros = int((m["frac"] or "")[:6].ljust(6, "0"))
    return parsed.replace(microsecond=micros).time()


def normalize(raw: RawReading) -> Record | None:
    """Convert a raw reading into a Record, or None if it can't be parsed.

    The date and the time-of-day come from two separate fields and are
    combined into a naive datetime resolved in UTC. UTC has no DST gaps or
    overlaps, so the resolution is always unique.
    """
    date_part = _parse_date(raw.date)
    if date_part is None:
        return None
    time_part = _parse_time_of_day(raw.time)
    if time_part is None:
        return None

    naive = datetime.combine(date_part, time_part)
    timestamp = naive.replace(tzinfo=timezone.utc)

    return Record(
        power_watts=VOLTAGE * raw.current,
        current_amperes=raw.current,
        timestamp=timestamp,
    )


class Series:
    """Arrival-ordered, append-only history of Records."""

    def __init__(self) -> None:
        self._records: list[Record] = []

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self._records)

    def all(self) -> tuple[Record, ...]:
        """Read-only snapshot in arrival order."""
        return tuple(self._records)

    def last(self) -> Record | None:
        return self._records[-1] if self._records else None

    def append_if_new(self, record: Record) -> bool:
        """Append unless *record* equals the current last record.

        The periodic refresh may fetch the same latest reading again before
        the upstream produces a new one.
        """
        if self._records and self._records[-1] == record:
            return False
        self._records.append(record)
        return True

    def extend_normalized(self, raws: Iterable[RawReading]) -> int:
        """Normalize and append a history batch, skipping unparseable readings.

        Every valid reading in the batch is kept, repeated values included;
        only the refresh path deduplicates.
        """
        added = 0
        for raw in raws:
            record = normalize(raw)
            if record is None:
                logger.debug("Dropping unparseable reading: %r", raw)
                continue
            self._records.append(record)
            added += 1
        return added
