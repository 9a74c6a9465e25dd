"""Shared test fixtures for pyPulseReader tests."""

from __future__ import annotations

import struct
from datetime import UTC, datetime
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from pulsereader import LastReading, MappingLookup

GAS_OBIS_CODE = "7-0:3.0.0"


@pytest.fixture
def berlin() -> ZoneInfo:
    """Default reference time zone of the interpolation grid."""
    return ZoneInfo("Europe/Berlin")


@pytest.fixture
def previous_measured_at() -> datetime:
    return datetime(2019, 1, 1, 10, 34, 11, tzinfo=UTC)


@pytest.fixture
def measured_at() -> datetime:
    return datetime(2019, 1, 1, 12, 34, 56, tzinfo=UTC)


@pytest.fixture
def empty_lookup() -> MappingLookup:
    """Lookup that never finds a previous reading."""
    return MappingLookup()


@pytest.fixture
def gas_lookup(previous_measured_at: datetime) -> MappingLookup:
    """Lookup holding a previous gas reading of 0.003 m³."""
    return MappingLookup({GAS_OBIS_CODE: LastReading(value=0.003, measured_at=previous_measured_at)})


class RecordingLookup:
    """Lookup returning a fixed result and remembering every query."""

    def __init__(self, result: Any = None) -> None:
        self.result = result
        self.queries: list[str] = []

    def __call__(self, obis: str) -> Any:
        self.queries.append(obis)
        return self.result


@pytest.fixture
def recording_lookup() -> type[RecordingLookup]:
    return RecordingLookup


# Payload builders


def digital_channel(medium_type: int, counter: int, alert: bool = False, mode: bool = False, high: bool = False) -> bytes:
    """Encode a digital channel: settings byte plus little-endian counter."""
    settings = (medium_type << 4) | (alert << 2) | (mode << 1) | int(high)
    return bytes([settings]) + struct.pack("<I", counter)


def analog_channel(instant: float | None = None, average: float | None = None, current_mode: bool = False) -> bytes:
    """Encode an analog channel: settings byte plus the flagged floats, instant first."""
    settings = ((average is not None) << 7) | ((instant is not None) << 6) | int(current_mode)
    data = bytes([settings])
    if instant is not None:
        data += struct.pack("<f", instant)
    if average is not None:
        data += struct.pack("<f", average)
    return data


@pytest.fixture
def encode_digital() -> Any:
    return digital_channel


@pytest.fixture
def encode_analog() -> Any:
    return analog_channel


# Test markers for different test types
def pytest_configure(config: Any) -> None:
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test (fast, no external collaborators)")
    config.addinivalue_line("markers", "integration: mark test as an end-to-end payload decoding test")
