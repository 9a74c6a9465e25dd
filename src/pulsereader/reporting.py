"""Status/reporting block decoding.

A reporting block starts with a settings byte whose bits enable the optional
channels, MSB first:

    [reserved, user_triggered, mbus, ssi, analog2, analog1, digital2, digital1]

The enabled channels follow in the fixed order digital1, digital2, analog1,
analog2, mbus, each with its own layout:

    digital: settings byte, 4 byte little-endian counter
    analog:  settings byte, optional instant float, optional average float
    mbus:    status byte, raw M-Bus status byte, M-Bus data records to the end

A channel whose bytes are not all present ends the block; the fields decoded
up to that channel are kept.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum, StrEnum
from typing import Any

from .bits import unpack_fields, unpack_flag, unpack_unsigned
from .exceptions import TruncatedPayloadError
from .mbus import decode_records
from .stream import ByteStream

_LOGGER = logging.getLogger(__name__)

# =============================================================================
# Labels
# =============================================================================


class ChannelKind(Enum):
    DIGITAL = "digital"
    ANALOG = "analog"
    MBUS = "mbus"


class ReportingChannel(StrEnum):
    """Optional channels of a reporting block, in decode order."""

    DIGITAL1 = "digital1"
    DIGITAL2 = "digital2"
    ANALOG1 = "analog1"
    ANALOG2 = "analog2"
    MBUS = "mbus"

    @property
    def kind(self) -> ChannelKind:
        return _CHANNEL_KINDS[self]

    @property
    def field_prefix(self) -> str:
        return f"{self.value}_reporting"


_CHANNEL_KINDS = {
    ReportingChannel.DIGITAL1: ChannelKind.DIGITAL,
    ReportingChannel.DIGITAL2: ChannelKind.DIGITAL,
    ReportingChannel.ANALOG1: ChannelKind.ANALOG,
    ReportingChannel.ANALOG2: ChannelKind.ANALOG,
    ReportingChannel.MBUS: ChannelKind.MBUS,
}


class MediumType(StrEnum):
    NOT_AVAILABLE = "not_available"
    PULSES = "pulses"
    WATER_IN_LITER = "water_in_liter"
    ELECTRICITY_IN_WH = "electricity_in_wh"
    GAS_IN_LITER = "gas_in_liter"
    HEAT_IN_WH = "heat_in_wh"
    RESERVED_FOR_FUTURE_USE = "reserved_for_future_use"

    @classmethod
    def from_code(cls, code: int) -> MediumType:
        if code < len(_MEDIUM_TYPE_CODES):
            return _MEDIUM_TYPE_CODES[code]
        return cls.RESERVED_FOR_FUTURE_USE


_MEDIUM_TYPE_CODES = (
    MediumType.NOT_AVAILABLE,
    MediumType.PULSES,
    MediumType.WATER_IN_LITER,
    MediumType.ELECTRICITY_IN_WH,
    MediumType.GAS_IN_LITER,
    MediumType.HEAT_IN_WH,
)


class TriggerAlert(StrEnum):
    OK = "ok"
    ALERT = "alert"


class TriggerMode(StrEnum):
    DISABLED = "disabled"
    ENABLED = "enabled"


class ValueLevel(StrEnum):
    LOW = "low"
    HIGH = "high"


class AnalogMode(StrEnum):
    VOLTAGE = "0..10V"
    CURRENT = "4..20mA"


class MbusParameter(StrEnum):
    OK = "ok"
    NOTHING_REQUESTED = "nothing_requested"
    BUS_UNPOWERED = "bus_unpowered"
    NO_RESPONSE = "no_response"
    EMPTY_RESPONSE = "empty_response"
    INVALID_DATA = "invalid_data"
    RESERVED = "reserved"

    @classmethod
    def from_code(cls, code: int) -> MbusParameter:
        if code < len(_MBUS_PARAMETER_CODES):
            return _MBUS_PARAMETER_CODES[code]
        return cls.RESERVED


_MBUS_PARAMETER_CODES = (
    MbusParameter.OK,
    MbusParameter.NOTHING_REQUESTED,
    MbusParameter.BUS_UNPOWERED,
    MbusParameter.NO_RESPONSE,
    MbusParameter.EMPTY_RESPONSE,
    MbusParameter.INVALID_DATA,
)

# =============================================================================
# Settings byte
# =============================================================================


# Bit offsets counted from the MSB of the settings byte
SETTINGS_USER_TRIGGERED_OFFSET = 1
SETTINGS_MBUS_OFFSET = 2
SETTINGS_SSI_OFFSET = 3

_CHANNEL_ENABLE_OFFSETS = {
    ReportingChannel.DIGITAL1: 7,
    ReportingChannel.DIGITAL2: 6,
    ReportingChannel.ANALOG1: 5,
    ReportingChannel.ANALOG2: 4,
    ReportingChannel.MBUS: SETTINGS_MBUS_OFFSET,
}


@dataclass(frozen=True, kw_only=True)
class ReportingSettings:
    """Decoded settings byte of a reporting block.

    Attributes:
        user_triggered: The report was triggered by the user
        mbus: The M-Bus channel is present
        ssi: Signal strength indication flag
        channels: Enabled channels in decode order
    """

    user_triggered: bool
    mbus: bool
    ssi: bool
    channels: tuple[ReportingChannel, ...]

    @classmethod
    def from_byte(cls, settings: int) -> ReportingSettings:
        return cls(
            user_triggered=unpack_flag(settings, SETTINGS_USER_TRIGGERED_OFFSET),
            mbus=unpack_flag(settings, SETTINGS_MBUS_OFFSET),
            ssi=unpack_flag(settings, SETTINGS_SSI_OFFSET),
            channels=tuple(
                channel for channel in ReportingChannel if unpack_flag(settings, _CHANNEL_ENABLE_OFFSETS[channel])
            ),
        )

    def to_reading(self) -> dict[str, Any]:
        return {
            "user_triggered": self.user_triggered,
            "mbus": self.mbus,
            "ssi": self.ssi,
        }


# =============================================================================
# Channel decoders
# =============================================================================


# Fields of the channel itself, followed by any readings the channel adds
ChannelResult = tuple[dict[str, Any], list[dict[str, Any]]]


def _decode_digital(channel: ReportingChannel, stream: ByteStream) -> ChannelResult:
    settings = stream.read_u8()
    counter = stream.read_u32_le()

    medium_type, _rfu, trigger_alert, trigger_mode, value_high = unpack_fields(settings, 4, 1, 1, 1, 1)

    prefix = channel.field_prefix
    fields = {
        prefix: counter,
        f"{prefix}_medium_type": MediumType.from_code(medium_type),
        f"{prefix}_trigger_alert": TriggerAlert.ALERT if trigger_alert else TriggerAlert.OK,
        f"{prefix}_trigger_mode": TriggerMode.ENABLED if trigger_mode else TriggerMode.DISABLED,
        f"{prefix}_value_during_reporting": ValueLevel.HIGH if value_high else ValueLevel.LOW,
    }
    return fields, []


def _decode_analog(channel: ReportingChannel, stream: ByteStream) -> ChannelResult:
    settings = stream.read_u8()

    average_flag, instant_flag, _rfu, _threshold_alert, mode = unpack_fields(settings, 1, 1, 4, 1, 1)

    prefix = channel.field_prefix
    fields: dict[str, Any] = {}

    # Instant value always precedes the average value
    if instant_flag:
        fields[f"{prefix}_current_value"] = stream.read_f32_le()
    if average_flag:
        fields[f"{prefix}_average_value"] = stream.read_f32_le()

    fields[f"{prefix}_mode"] = AnalogMode.CURRENT if mode else AnalogMode.VOLTAGE
    return fields, []


def _decode_mbus(_channel: ReportingChannel, stream: ByteStream) -> ChannelResult:
    status = stream.read_u8()
    mbus_status = stream.read_u8()

    fields = {
        "mbus_parameter": MbusParameter.from_code(unpack_unsigned(status, 4, 4)),
        "mbus_status": mbus_status,
    }
    records = [record.to_reading() for record in decode_records(stream.read_rest())]
    return fields, records


_CHANNEL_DECODERS: dict[ChannelKind, Callable[[ReportingChannel, ByteStream], ChannelResult]] = {
    ChannelKind.DIGITAL: _decode_digital,
    ChannelKind.ANALOG: _decode_analog,
    ChannelKind.MBUS: _decode_mbus,
}


def decode_reporting(
    settings: int,
    stream: ByteStream,
    base: Mapping[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """Decode a reporting block.

    Args:
        settings: The settings byte of the block
        stream: Bytes following the settings byte
        base: Fields to place in front of the status reading

    Returns:
        The status reading followed by one reading per M-Bus data record
    """
    reporting = ReportingSettings.from_byte(settings)

    reading: dict[str, Any] = dict(base or {})
    reading.update(reporting.to_reading())

    extra_readings: list[dict[str, Any]] = []

    for channel in reporting.channels:
        try:
            fields, readings = _CHANNEL_DECODERS[channel.kind](channel, stream)
        except TruncatedPayloadError as err:
            _LOGGER.debug("Reporting block ends before channel %s: %s", channel, err)
            break

        reading.update(fields)
        extra_readings.extend(readings)

    return [reading, *extra_readings]
