"""OBIS annotation of digital counters and interpolation of missing readings.

A digital channel whose medium type has an OBIS rule gets two extra fields:
the code under "obis" and the converted counter under the code itself.

    digital1_reporting=6, digital1_reporting_medium_type=gas_in_liter
        -> obis="7-0:3.0.0", "7-0:3.0.0"=0.006

When the previous reading of that code is known, the readings a device would
have sent on a fixed grid between then and now are synthesized by linear
interpolation:

    0.003 @ 10:34:11Z, 0.006 @ 12:34:56Z, hourly grid
        -> 0.004 @ 11:00:00Z, 0.005 @ 12:00:00Z

The grid starts at the previous timestamp rounded forward to a multiple of
the step on the wall clock of the reference time zone.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, tzinfo
from decimal import Decimal
from numbers import Real
from types import MappingProxyType
from typing import Any

from .config import DecoderConfig
from .exceptions import LastReadingLookupError
from .frame import Frame
from .lookup import LastReading, LastReadingLookup
from .reporting import MediumType, ReportingChannel

_LOGGER = logging.getLogger(__name__)

OBIS_FIELD = "obis"
MEASURED_AT_FIELD = "measured_at"
INTERPOLATED_FIELD = "interpolated"

OBIS_DECIMALS = 3

_EPOCH = datetime(1970, 1, 1)

# Channels that may carry an OBIS annotated counter, in priority order
_OBIS_CHANNELS = (ReportingChannel.DIGITAL1, ReportingChannel.DIGITAL2)


@dataclass(frozen=True, kw_only=True)
class ObisRule:
    """OBIS code of a medium type and the factor from device units to OBIS units."""

    code: str
    factor: float

    def convert(self, counter: float) -> float:
        return round(counter * self.factor, OBIS_DECIMALS)


OBIS_RULES: Mapping[MediumType, ObisRule] = MappingProxyType(
    {
        # Gas volume: liters to m³
        MediumType.GAS_IN_LITER: ObisRule(code="7-0:3.0.0", factor=0.001),
    }
)


# =============================================================================
# Interpolation
# =============================================================================


def _as_utc(timestamp: datetime) -> datetime:
    # Naive timestamps are taken as UTC
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=UTC)
    return timestamp.astimezone(UTC)


def grid_anchor(t0: datetime, step: timedelta, zone: tzinfo) -> datetime:
    """Round `t0` forward to the next multiple of `step` on the wall clock of `zone`.

    A timestamp already on the grid moves a full step forward, so the anchor is
    always strictly later than `t0`.
    """
    if step <= timedelta(0):
        raise ValueError(f"Grid step must be positive, got {step}")

    t0 = _as_utc(t0)
    wall_clock = t0.astimezone(zone).replace(tzinfo=None)

    remainder = (wall_clock - _EPOCH) % step
    return (t0 + (step - remainder)).astimezone(zone)


def interpolation_grid(t0: datetime, t1: datetime, step: timedelta, zone: tzinfo) -> Iterator[datetime]:
    """Yield grid timestamps strictly between `t0` and `t1`, in `zone`."""
    t1 = _as_utc(t1)

    current = _as_utc(grid_anchor(t0, step, zone))
    while current < t1:
        yield current.astimezone(zone)
        current += step


def interpolate_linear(t0: datetime, v0: float, t1: datetime, v1: float, timestamp: datetime) -> float:
    """Linearly interpolate the value at `timestamp` on epoch seconds.

    Raises:
        ValueError: If `t1` is not later than `t0`
    """
    start = _as_utc(t0).timestamp()
    end = _as_utc(t1).timestamp()

    if end <= start:
        raise ValueError(f"Interpolation needs t0 < t1, got {t0} and {t1}")

    return v0 + (v1 - v0) * (_as_utc(timestamp).timestamp() - start) / (end - start)


# =============================================================================
# Annotation
# =============================================================================


def _last_reading(result: object) -> LastReading:
    if isinstance(result, Mapping):
        try:
            result = LastReading(value=result["value"], measured_at=result["measured_at"])
        except KeyError as err:
            raise ValueError(f"Last reading lacks field {err}") from err

    if not isinstance(result, LastReading):
        raise ValueError(f"Unexpected last reading {result!r}")

    if isinstance(result.value, bool) or not isinstance(result.value, Real | Decimal):
        raise ValueError(f"Last reading value {result.value!r} is not a number")

    if not isinstance(result.measured_at, datetime):
        raise ValueError(f"Last reading timestamp {result.measured_at!r} is not a datetime")

    return LastReading(value=float(result.value), measured_at=result.measured_at)


def _obis_rule(reading: Mapping[str, Any]) -> tuple[ObisRule, Any] | None:
    for channel in _OBIS_CHANNELS:
        counter = reading.get(channel.field_prefix)
        rule = OBIS_RULES.get(reading.get(f"{channel.field_prefix}_medium_type"))  # type: ignore[arg-type]

        if rule is not None and counter is not None:
            return rule, counter

    return None


def _synthesize(
    code: str,
    value: float,
    frame: Frame,
    lookup: LastReadingLookup | None,
    config: DecoderConfig,
) -> list[dict[str, Any]]:
    if not config.interpolate or lookup is None:
        return []

    if frame.measured_at is None:
        _LOGGER.info("Frame has no measurement time, not interpolating %s", code)
        return []

    try:
        result = lookup(code)
    except LastReadingLookupError as err:
        _LOGGER.warning("Last reading lookup for %s failed: %s", code, err)
        return []
    except Exception:
        # Lookups outside this package may leak their own store errors
        _LOGGER.warning("Last reading lookup for %s raised unexpectedly", code, exc_info=True)
        return []

    if result is None:
        _LOGGER.info("No previous reading for %s, not interpolating", code)
        return []

    try:
        last = _last_reading(result)
    except ValueError as err:
        _LOGGER.warning("Ignoring malformed last reading for %s: %s", code, err)
        return []

    return [
        {
            OBIS_FIELD: code,
            code: round(
                interpolate_linear(last.measured_at, last.value, frame.measured_at, value, timestamp),
                OBIS_DECIMALS,
            ),
            MEASURED_AT_FIELD: timestamp,
            INTERPOLATED_FIELD: True,
        }
        for timestamp in interpolation_grid(last.measured_at, frame.measured_at, config.step, config.zone)
    ]


def annotate(
    readings: list[dict[str, Any]],
    frame: Frame,
    lookup: LastReadingLookup | None,
    config: DecoderConfig,
) -> list[dict[str, Any]]:
    """Add OBIS fields to matching readings and append interpolated readings.

    Readings without an OBIS annotated channel pass through unchanged. The
    interpolated readings follow all primary readings.
    """
    annotated: list[dict[str, Any]] = []
    synthesized: list[dict[str, Any]] = []

    for reading in readings:
        match = _obis_rule(reading)

        if match is None:
            annotated.append(reading)
            continue

        rule, counter = match
        value = rule.convert(counter)

        annotated.append({**reading, OBIS_FIELD: rule.code, rule.code: value})
        synthesized.extend(_synthesize(rule.code, value, frame, lookup, config))

    return annotated + synthesized
