"""Contract of the last-reading lookup used for interpolation.

The decoder asks for the most recent stored reading of an OBIS code. A lookup
is any callable taking the code and returning a LastReading, or None when
nothing is stored yet. Lookups that cannot reach their store raise
LastReadingLookupError. Other exceptions are tolerated the same way, and any
other return value is treated as malformed and ignored. Either way the
primary readings are kept without interpolation.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class LastReading:
    """The most recent stored value of an OBIS code."""

    value: float
    measured_at: datetime


class LastReadingLookup(Protocol):
    def __call__(self, obis: str) -> object: ...


class MappingLookup:
    """Lookup backed by an in-memory mapping of OBIS code to last reading."""

    def __init__(self, readings: Mapping[str, LastReading] | None = None) -> None:
        self._readings = dict(readings or {})

    def __call__(self, obis: str) -> LastReading | None:
        return self._readings.get(obis)

    def __repr__(self) -> str:
        return f"MappingLookup({self._readings!r})"

    def store(self, obis: str, reading: LastReading) -> None:
        self._readings[obis] = reading
