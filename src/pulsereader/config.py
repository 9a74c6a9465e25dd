"""Decoder configuration.

The values here are configuration-time constants: they are fixed when a
PayloadDecoder is constructed and never change per decode call.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from functools import cached_property
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_INTERPOLATE = True
DEFAULT_INTERPOLATE_MINUTES = 60
DEFAULT_TIMEZONE = "Europe/Berlin"


@dataclass(frozen=True, kw_only=True)
class DecoderConfig:
    """Settings for the OBIS interpolation engine.

    Attributes:
        interpolate: Synthesize readings between the last known reading and the current one
        interpolate_minutes: Step of the interpolation grid in minutes
        timezone: IANA name of the reference time zone of the grid
    """

    interpolate: bool = DEFAULT_INTERPOLATE
    interpolate_minutes: int = DEFAULT_INTERPOLATE_MINUTES
    timezone: str = DEFAULT_TIMEZONE

    def __post_init__(self) -> None:
        if self.interpolate_minutes <= 0:
            raise ValueError(f"Interpolation step must be positive, got {self.interpolate_minutes} minutes")

        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as err:
            raise ValueError(f"Unknown time zone: {self.timezone!r}") from err

    @cached_property
    def zone(self) -> ZoneInfo:
        """Reference time zone of the interpolation grid."""
        return ZoneInfo(self.timezone)

    @property
    def step(self) -> timedelta:
        """Interpolation grid step."""
        return timedelta(minutes=self.interpolate_minutes)


DEFAULT_CONFIG = DecoderConfig()
