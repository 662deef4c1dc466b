"""HTTP client for the remote reading endpoint.

The endpoint is a spreadsheet web-app that answers ``?action=getLast`` with a
single JSON object and ``?action=getAll`` with a JSON array (oldest first).
Each object carries ``Date``, ``Time`` and ``Corrente`` fields.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests

logger = logging.getLogger(__name__)

# Wire field names
F_DATE = "Date"
F_TIME = "Time"
F_CURRENT = "Corrente"


class FetchError(Exception):
    """The remote source could not produce a usable response."""


@dataclass(frozen=True)
class RawReading:
    """One reading exactly as the endpoint sent it."""

    date: str
    time: str
    current: float

    @classmethod
    def from_json(cls, obj: Any) -> RawReading:
        if not isinstance(obj, dict):
            raise FetchError(f"expected a reading object, got {type(obj).__name__}")
        try:
            date = obj[F_DATE]
            time_ = obj[F_TIME]
            current = obj[F_CURRENT]
        except KeyError as e:
            raise FetchError(f"reading is missing field {e.args[0]!r}") from e
        # bool is an int subclass but never a valid current
        if isinstance(current, bool) or not isinstance(current, (int, float)):
            raise FetchError(f"non-numeric {F_CURRENT}: {current!r}")
        try:
            value = float(current)
        except (OverflowError, ValueError) as e:
            # JSON integers are unbounded; float() overflows past ~1e308
            raise FetchError(f"{F_CURRENT} out of range: {e}") from e
        return cls(date=str(date), time=str(time_), current=value)


class ReadingSource:
    """Fetches readings from the remote endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()

    def _get_json(self, action: str) -> Any:
        try:
            resp = self._session.get(
                self.url, params={"action": action}, timeout=self.timeout
            )
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            # JSON decode errors are RequestException subclasses in requests>=2.27
            raise FetchError(f"{action}: {e}") from e
        except ValueError as e:
            raise FetchError(f"{action}: invalid JSON body: {e}") from e

    def get_last_reading(self) -> RawReading:
        """Return the most recent reading."""
        return RawReading.from_json(self._get_json("getLast"))

    def get_all_readings(self) -> list[RawReading]:
        """Return the full reading history, oldest first."""
        body = self._get_json("getAll")
        if not isinstance(body, list):
            raise FetchError(f"getAll: expected a list, got {type(body).__name__}")
        readings = [RawReading.from_json(obj) for obj in body]
        logger.info("Fetched %d readings from %s", len(readings), self.url)
        return readings
