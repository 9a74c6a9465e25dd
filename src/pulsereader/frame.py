"""Frame and reading types shared by the decoders."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum, StrEnum
from types import MappingProxyType
from typing import Any

# A decoded reading: flat mapping from field name to a scalar value.
Reading = Mapping[str, Any]


class FramePort(IntEnum):
    """LoRaWAN frame ports used by the device."""

    STATUS = 24
    STATUS_ONLY = 25
    CONFIG_REQUEST = 49
    MBUS_CONNECT = 53
    BOOT = 99


class FrameShape(StrEnum):
    """Every payload layout the dispatcher knows about."""

    STATUS = "status"
    STATUS_ONLY = "status_only"
    BOOT = "boot"
    SHUTDOWN = "shutdown"
    ERROR = "error"
    CONFIG_REQUEST = "config_request"
    MBUS_CONNECT = "mbus_connect"


@dataclass(frozen=True, kw_only=True)
class Frame:
    """One uplink payload with its receive context.

    Attributes:
        payload: Raw payload bytes
        port: LoRaWAN frame port
        measured_at: Time the payload was measured, needed for interpolation
        meta: Arbitrary upstream metadata, passed through untouched
    """

    payload: bytes
    port: int
    measured_at: datetime | None = None
    meta: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "payload", bytes(self.payload))
        object.__setattr__(self, "meta", MappingProxyType(dict(self.meta)))

    @property
    def marker(self) -> int | None:
        """First payload byte, which selects the layout on some ports."""
        return self.payload[0] if self.payload else None


def freeze(reading: Mapping[str, Any]) -> Reading:
    """Return a read-only copy of a reading."""
    return MappingProxyType(dict(reading))
