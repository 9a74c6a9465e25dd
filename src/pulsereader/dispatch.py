"""Frame dispatching by port and marker byte.

Every payload layout the device sends is a FrameShape. The shape is looked up
in a closed table keyed by (port, marker byte); a key with marker None covers
every payload on its port. The marker specific key wins:

    (99, 0x00) -> BOOT          (99, 0x01) -> SHUTDOWN      (99, 0x10) -> ERROR
    (24, None) -> STATUS        (25, None) -> STATUS_ONLY
    (49, None) -> CONFIG_REQUEST                            (53, 0x01) -> MBUS_CONNECT

Payloads that match no key, or whose bytes do not fit their shape, are logged
and produce no readings.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from .bits import unpack_fields
from .exceptions import PayloadError, TruncatedPayloadError, UnknownFrameError
from .frame import Frame, FramePort, FrameShape
from .reporting import decode_reporting
from .stream import ByteStream

_LOGGER = logging.getLogger(__name__)

BOOT_MARKER = 0x00
SHUTDOWN_MARKER = 0x01
ERROR_MARKER = 0x10
MBUS_CONNECT_MARKER = 0x01

SERIAL_NUMBER_LENGTH = 4
FIRMWARE_VERSION_LENGTH = 3

# =============================================================================
# Labels
# =============================================================================


class ResetReason(StrEnum):
    WATCHDOG_RESET = "watchdog_reset"
    SOFT_RESET = "soft_reset"
    NORMAL_MAGNET = "normal_magnet"
    UNKNOWN = "unknown"


_RESET_REASON_CODES = {
    0x02: ResetReason.WATCHDOG_RESET,
    0x04: ResetReason.SOFT_RESET,
    0x10: ResetReason.NORMAL_MAGNET,
}


class BatteryVoltage(StrEnum):
    V3_0 = "3.0V"
    V3_6 = "3.6V"
    UNKNOWN = "unknown"


_BATTERY_VOLTAGE_CODES = {
    0x01: BatteryVoltage.V3_0,
    0x02: BatteryVoltage.V3_6,
}


class ShutdownReason(StrEnum):
    HARDWARE_ERROR = "hardware_error"
    USER_MAGNET = "user_magnet"
    USER_DFU = "user_dfu"
    UNKNOWN = "unknown"


_SHUTDOWN_REASON_CODES = {
    0x02: ShutdownReason.HARDWARE_ERROR,
    0x31: ShutdownReason.USER_MAGNET,
    0x32: ShutdownReason.USER_DFU,
}


class MbusFixedHeader(StrEnum):
    SENT = "sent"
    NOT_SENT = "not_sent"


# =============================================================================
# Frame decoders
# =============================================================================


def _decode_status(stream: ByteStream) -> list[dict[str, Any]]:
    settings = stream.read_u8()
    battery = stream.read_u8()
    temperature = stream.read_s8()
    rssi = stream.read_s8()

    # Signal strength is sent as its magnitude
    telemetry = {"battery": battery, "temperature": temperature, "rssi": -rssi}
    return decode_reporting(settings, stream, telemetry)


def _decode_status_only(stream: ByteStream) -> list[dict[str, Any]]:
    return decode_reporting(stream.read_u8(), stream)


def _decode_boot(stream: ByteStream) -> list[dict[str, Any]]:
    serial = stream.read(SERIAL_NUMBER_LENGTH)
    firmware = stream.read(FIRMWARE_VERSION_LENGTH)

    reading: dict[str, Any] = {
        "type": FrameShape.BOOT,
        "serial": serial.hex().upper(),
        "firmware": ".".join(str(part) for part in firmware),
    }

    if not stream.exhausted:
        reading["reset_reason"] = _RESET_REASON_CODES.get(stream.read_u8(), ResetReason.UNKNOWN)

        # Only sent by firmware that appends exactly one battery byte
        if stream.remaining == 1:
            reading["battery_voltage"] = _BATTERY_VOLTAGE_CODES.get(stream.read_u8(), BatteryVoltage.UNKNOWN)

    return [reading]


def _decode_shutdown(stream: ByteStream) -> list[dict[str, Any]]:
    reading: dict[str, Any] = {"type": FrameShape.SHUTDOWN}

    if stream.exhausted:
        return [reading]

    reading["reason"] = _SHUTDOWN_REASON_CODES.get(stream.read_u8(), ShutdownReason.UNKNOWN)

    if stream.exhausted:
        _LOGGER.debug("Shutdown frame carries no status block")
        return [reading]

    return [reading, *_decode_status_only(stream)]


def _decode_error(stream: ByteStream) -> list[dict[str, Any]]:
    error_code = stream.read_u8()

    if not stream.exhausted:
        raise PayloadError(f"Error frame has {stream.remaining} unexpected trailing bytes")

    return [{"type": FrameShape.ERROR, "error_code": error_code}]


def _decode_config_request(_stream: ByteStream) -> list[dict[str, Any]]:
    return [{"type": FrameShape.CONFIG_REQUEST}]


def _decode_mbus_connect(stream: ByteStream) -> list[dict[str, Any]]:
    packet_info = stream.read_u8()

    only_drh, fixed_header, _rfu, packets_to_follow, packet_number = unpack_fields(packet_info, 1, 1, 2, 1, 3)

    reading: dict[str, Any] = {
        "type": FrameShape.MBUS_CONNECT,
        "packet_number": packet_number,
        "packets_to_follow": bool(packets_to_follow),
        "mbus_fixed_header": MbusFixedHeader.SENT if fixed_header else MbusFixedHeader.NOT_SENT,
        "only_drh": bool(only_drh),
    }

    if not fixed_header:
        return [reading]

    try:
        header = {
            # Identification number is sent little-endian
            "bcd_ident_number": stream.read(4)[::-1].hex().upper(),
            "manufacturer_id": stream.read(2).hex().upper(),
            "sw_version": stream.read(1).hex().upper(),
            "medium": stream.read(1).hex().upper(),
            "access_number": stream.read(1).hex().upper(),
            "status": stream.read(1).hex().upper(),
            "signature": stream.read(2).hex().upper(),
        }
    except TruncatedPayloadError as err:
        _LOGGER.warning("M-Bus connect frame announces a fixed header but it is truncated: %s", err)
        return [reading]

    # Remaining data record header bytes are not decoded
    reading.update(header)
    return [reading]


# =============================================================================
# Dispatch table
# =============================================================================


FrameDecoder = Callable[[ByteStream], list[dict[str, Any]]]

_FRAME_SHAPES: dict[tuple[int, int | None], FrameShape] = {
    (FramePort.STATUS, None): FrameShape.STATUS,
    (FramePort.STATUS_ONLY, None): FrameShape.STATUS_ONLY,
    (FramePort.BOOT, BOOT_MARKER): FrameShape.BOOT,
    (FramePort.BOOT, SHUTDOWN_MARKER): FrameShape.SHUTDOWN,
    (FramePort.BOOT, ERROR_MARKER): FrameShape.ERROR,
    (FramePort.CONFIG_REQUEST, None): FrameShape.CONFIG_REQUEST,
    (FramePort.MBUS_CONNECT, MBUS_CONNECT_MARKER): FrameShape.MBUS_CONNECT,
}

_FRAME_DECODERS: dict[FrameShape, FrameDecoder] = {
    FrameShape.STATUS: _decode_status,
    FrameShape.STATUS_ONLY: _decode_status_only,
    FrameShape.BOOT: _decode_boot,
    FrameShape.SHUTDOWN: _decode_shutdown,
    FrameShape.ERROR: _decode_error,
    FrameShape.CONFIG_REQUEST: _decode_config_request,
    FrameShape.MBUS_CONNECT: _decode_mbus_connect,
}


def frame_shape(frame: Frame) -> tuple[FrameShape, bool]:
    """Look up the shape of a frame.

    Returns:
        The shape and whether it was selected by the marker byte

    Raises:
        UnknownFrameError: If no shape matches the port and marker
    """
    marker = frame.marker
    if marker is not None and (frame.port, marker) in _FRAME_SHAPES:
        return _FRAME_SHAPES[(frame.port, marker)], True

    if (frame.port, None) in _FRAME_SHAPES:
        return _FRAME_SHAPES[(frame.port, None)], False

    marker_text = "none" if marker is None else f"0x{marker:02X}"
    raise UnknownFrameError(f"No decoder for port {frame.port} with marker {marker_text}")


def dispatch(frame: Frame) -> list[dict[str, Any]]:
    """Decode a frame into readings.

    Never raises for payload content: unknown or malformed frames are logged
    and produce an empty list.
    """
    try:
        shape, by_marker = frame_shape(frame)

        stream = ByteStream(frame.payload)
        if by_marker:
            stream.read_u8()

        return _FRAME_DECODERS[shape](stream)
    except PayloadError as err:
        _LOGGER.warning("Cannot decode payload %s on port %s: %s", frame.payload.hex().upper(), frame.port, err)
        return []
