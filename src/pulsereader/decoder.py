"""Payload decoding entry point."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from .config import DEFAULT_CONFIG, DecoderConfig
from .dispatch import dispatch
from .frame import Frame, Reading, freeze
from .lookup import LastReadingLookup
from .obis import annotate


class PayloadDecoder:
    """Decode device payloads into readings.

    Args:
        config: Interpolation settings
        lookup: Source of the last stored reading per OBIS code, None disables interpolation

    Example:
        decoder = PayloadDecoder(lookup=MappingLookup())
        readings = decoder.decode(Frame(payload=bytes.fromhex("1001"), port=99))
    """

    def __init__(self, config: DecoderConfig = DEFAULT_CONFIG, lookup: LastReadingLookup | None = None) -> None:
        self.config = config
        self.lookup = lookup

    def __repr__(self) -> str:
        return f"PayloadDecoder(config={self.config!r}, lookup={self.lookup!r})"

    def decode(self, frame: Frame) -> list[Reading]:
        """Decode one frame.

        Returns:
            Primary readings in channel order, followed by interpolated readings.
            Empty if the frame is not recognized.
        """
        readings = annotate(dispatch(frame), frame, self.lookup, self.config)
        return [freeze(reading) for reading in readings]


def decode(
    payload: bytes,
    port: int,
    *,
    measured_at: datetime | None = None,
    meta: Mapping[str, Any] | None = None,
    lookup: LastReadingLookup | None = None,
    config: DecoderConfig = DEFAULT_CONFIG,
) -> list[Reading]:
    """Decode a single payload received on `port`."""
    frame = Frame(payload=payload, port=port, measured_at=measured_at, meta=meta or {})
    return PayloadDecoder(config, lookup).decode(frame)


def decode_hex(payload: str, port: int, **kwargs: Any) -> list[Reading]:
    """Decode a payload given as a hex string.

    Raises:
        ValueError: If `payload` is not valid hex
    """
    return decode(bytes.fromhex(payload), port, **kwargs)
