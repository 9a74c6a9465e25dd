"""M-Bus data record decoding.

A wired M-Bus sub-frame forwarded by the device is a plain sequence of data
records (DIB + VIB + data) without the link layer around it. The records are
decoded in order until the bytes run out:

    bytes -> [DataRecord(power, 4700, W), DataRecord(energy, 1616000, Wh), ...]

A malformed or truncated record ends the sequence; the records decoded before
it are kept.

Reference: EN 13757-3:2018, section 6
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..exceptions import PayloadError
from ..stream import ByteStream
from .data import select_data_type
from .dib import DIB, DataDIB, IdleFillerDIB, ManufacturerDIB
from .value import ValueDescription, ValueFunction, ValueUnit
from .vif import VIB

_LOGGER = logging.getLogger(__name__)

ENERGY_KWH_FACTOR = 1000
ENERGY_KWH_DECIMALS = 3


@dataclass(frozen=True, kw_only=True)
class DataRecord:
    """One decoded M-Bus data record.

    Attributes:
        description: What the value measures, used as field name
        value: Decoded and scaled value (None for invalid or empty data fields)
        unit: Unit of the value
        function_field: Current, maximum, minimum or error state value
        memory_address: Storage number
        sub_device: Subunit
        tariff: Tariff
        more_records_follow: Manufacturer data announces more records in the next telegram
    """

    description: str
    value: Any
    unit: str = ValueUnit.NONE
    function_field: ValueFunction = ValueFunction.CURRENT
    memory_address: int = 0
    sub_device: int = 0
    tariff: int = 0
    more_records_follow: bool = False

    def to_reading(self) -> dict[str, Any]:
        """Flatten the record into a reading.

        Energy in Wh is reported in kWh, and error codes carry no unit.
        """
        key = str(self.description)
        value = self.value
        unit = self.unit

        if self.description == ValueDescription.ERROR_CODES:
            unit = ValueUnit.NONE
        elif self.description == ValueDescription.ENERGY and self.unit == ValueUnit.WH:
            # Records without data keep None but share the unit of the others
            if _is_number(value):
                value = round(value / ENERGY_KWH_FACTOR, ENERGY_KWH_DECIMALS)
            unit = ValueUnit.KWH

        reading: dict[str, Any] = {
            key: value,
            "unit": unit,
            "function_field": self.function_field,
            "memory_address": self.memory_address,
            "sub_device": self.sub_device,
            "tariff": self.tariff,
        }

        if self.description == ValueDescription.MANUFACTURER_DATA:
            reading["more_records_follow"] = self.more_records_follow

        return reading


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _decode_data_record(dib: DataDIB, stream: ByteStream) -> DataRecord:
    vib = VIB.from_stream(stream)

    data_type = select_data_type(dib.data_types, vib.data_rules)
    value = data_type.read(stream)

    if _is_number(value):
        value = vib.transform(value)

    return DataRecord(
        description=vib.description,
        value=value,
        unit=vib.unit,
        function_field=dib.function,
        memory_address=dib.storage_number,
        sub_device=dib.subunit,
        tariff=dib.tariff,
    )


def decode_records(data: bytes) -> list[DataRecord]:
    """Decode every data record in an M-Bus sub-frame.

    Idle fillers are skipped. Manufacturer specific data ends the record
    list and is returned as a single manufacturer_data record holding the
    remaining bytes as upper-case hex.

    Never raises for malformed content: decoding stops at the first record
    that cannot be decoded.
    """
    stream = ByteStream(data)
    records: list[DataRecord] = []

    while not stream.exhausted:
        position = stream.position

        try:
            dib = DIB.from_stream(stream)

            if isinstance(dib, IdleFillerDIB):
                continue

            if isinstance(dib, ManufacturerDIB):
                records.append(
                    DataRecord(
                        description=ValueDescription.MANUFACTURER_DATA,
                        value=stream.read_rest().hex().upper(),
                        more_records_follow=dib.more_records_follow,
                    )
                )
                break

            if not isinstance(dib, DataDIB):
                raise ValueError(f"Unexpected DIB type {type(dib).__name__}")

            records.append(_decode_data_record(dib, stream))
        except (ValueError, PayloadError) as err:
            _LOGGER.warning("Stopped decoding M-Bus records at byte %s of %s: %s", position, len(data), err)
            break

    return records
