"""VIF (Value Information Field) chain parsing and interpretation.

A data record's DIB is followed by a VIB: one VIF and up to ten VIFEs. The
VIF either describes the value directly (primary table), points into an
extension table (0xFB, 0xFD), announces a plain text unit (0x7C) or marks the
record as manufacturer specific (0x7F). Combinable VIFEs after the value
description scale or offset the value.

Reference: EN 13757-3:2018, Tables 10-16
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass
from functools import lru_cache

from ..stream import ByteStream
from .data import DataCategory
from .value import ValueDescription, ValueTransformer, ValueUnit, ValueUnitTransformer

# ============================================================================
# VIF Constants
# ============================================================================


VIFE_MAXIMUM_CHAIN_LENGTH = 10  # Maximum number of chained VIFE bytes

VIF_EXTENSION_BIT_MASK = 0b10000000  # Bit 7: extension bit (more VIFE bytes follow)


# =============================================================================
# VIF Descriptors
# =============================================================================


@dataclass(frozen=True, kw_only=True)
class _AbstractFieldDescriptor(ABC):
    code: int  # VIF/VIFE code value without extension bit
    mask: int = 0b01111111  # Bit mask for pattern matching (default: strip extension bit)


@dataclass(frozen=True, kw_only=True)
class _TrueFieldDescriptor(_AbstractFieldDescriptor):
    """Descriptor for codes that define description, unit and data rules."""

    value_description: ValueDescription

    value_unit: ValueUnit = ValueUnit.NONE

    value_unit_transformer: ValueUnitTransformer | None = None

    value_transformer: ValueTransformer | None = None

    data_rules: DataCategory = DataCategory.NUMERIC


@dataclass(frozen=True, kw_only=True)
class _PlainTextFieldDescriptor(_TrueFieldDescriptor):
    """Plain text VIF (0x7C): an ASCII unit follows the VIB."""


@dataclass(frozen=True, kw_only=True)
class _ManufacturerFieldDescriptor(_AbstractFieldDescriptor):
    """Manufacturer specific VIF/VIFE (0x7F/0xFF)."""


@dataclass(frozen=True, kw_only=True)
class _CombinableFieldDescriptor(_AbstractFieldDescriptor):
    """Combinable (orthogonal) VIFE, optionally correcting the value."""

    value_transformer: ValueTransformer | None = None


@dataclass(frozen=True, kw_only=True)
class _ExtensionFieldDescriptor(_AbstractFieldDescriptor):
    """Code whose next field is looked up in another table."""

    mask: int = 0b11111111

    extension_table: tuple[_AbstractFieldDescriptor, ...]


# =============================================================================
# VIF/VIFE Lookup Tables
# =============================================================================


# Any VIFE after a manufacturer specific field is manufacturer specific too
_ManufacturerFieldTable: tuple[_AbstractFieldDescriptor, ...] = (_ManufacturerFieldDescriptor(code=0x00, mask=0x00),)


# Second level of combinable VIFEs (after 0xFC), consumed without effect
_CombinableExtensionFieldTable: tuple[_AbstractFieldDescriptor, ...] = (_CombinableFieldDescriptor(code=0x00, mask=0x00),)


# Combinable (orthogonal) VIFE codes, Table 15
_CombinableFieldTable: tuple[_AbstractFieldDescriptor, ...] = (
    # E111 0nnn: Multiplicative correction factor 10^(nnn-6)
    _CombinableFieldDescriptor(
        code=0b01110000,
        mask=0b01111000,
        value_transformer=ValueTransformer.MULT_10_POW_NNN_MINUS_6,
    ),
    # E111 10nn: Additive correction constant 10^(nn-3) in the unit of the VIF
    _CombinableFieldDescriptor(
        code=0b01111000,
        mask=0b01111100,
        value_transformer=ValueTransformer.ADD_10_POW_NN_MINUS_3,
    ),
    # E111 1100 (0xFC): Extension of combinable VIFE codes
    _ExtensionFieldDescriptor(
        code=0b11111100,
        extension_table=_CombinableExtensionFieldTable,
    ),
    # E111 1101: Multiplicative correction factor 1000
    _CombinableFieldDescriptor(
        code=0b01111101,
        value_transformer=ValueTransformer.MULT_1000,
    ),
    # E111 1111: Manufacturer specific VIFEs follow
    _ManufacturerFieldDescriptor(
        code=0b01111111,
    ),
    # Everything else (record errors, per-time qualifiers, limits) leaves the value unchanged
    _CombinableFieldDescriptor(
        code=0b00000000,
        mask=0b00000000,
    ),
)


# Second extension table (VIF 0xFB), Table 14
_SecondExtensionFieldTable: tuple[_AbstractFieldDescriptor, ...] = (
    # E000 000n: Energy 10^(n-1) MWh
    _TrueFieldDescriptor(
        code=0b00000000,
        mask=0b01111110,
        value_description=ValueDescription.ENERGY,
        value_unit=ValueUnit.WH,
        value_transformer=ValueTransformer.MULT_10_POW_N_PLUS_5,
    ),
    # E000 100n: Energy 10^(n-1) GJ
    _TrueFieldDescriptor(
        code=0b00001000,
        mask=0b01111110,
        value_description=ValueDescription.ENERGY,
        value_unit=ValueUnit.J,
        value_transformer=ValueTransformer.MULT_10_POW_N_PLUS_8,
    ),
    # E001 000n: Volume 10^(n+2) m³
    _TrueFieldDescriptor(
        code=0b00010000,
        mask=0b01111110,
        value_description=ValueDescription.VOLUME,
        value_unit=ValueUnit.M3,
        value_transformer=ValueTransformer.MULT_10_POW_N_PLUS_2,
    ),
    # E001 100n: Mass 10^(n+2) t
    _TrueFieldDescriptor(
        code=0b00011000,
        mask=0b01111110,
        value_description=ValueDescription.MASS,
        value_unit=ValueUnit.KG,
        value_transformer=ValueTransformer.MULT_10_POW_N_PLUS_5,
    ),
    # E001 101n: Relative humidity 10^(n-1) %
    _TrueFieldDescriptor(
        code=0b00011010,
        mask=0b01111110,
        value_description=ValueDescription.RELATIVE_HUMIDITY,
        value_unit=ValueUnit.PERCENT,
        value_transformer=ValueTransformer.MULT_10_POW_N_MINUS_1,
    ),
    # E010 100n: Power 10^(n-1) MW
    _TrueFieldDescriptor(
        code=0b00101000,
        mask=0b01111110,
        value_description=ValueDescription.POWER,
        value_unit=ValueUnit.W,
        value_transformer=ValueTransformer.MULT_10_POW_N_PLUS_5,
    ),
    # E011 000n: Power 10^(n-1) GJ/h
    _TrueFieldDescriptor(
        code=0b00110000,
        mask=0b01111110,
        value_description=ValueDescription.POWER,
        value_unit=ValueUnit.J_H,
        value_transformer=ValueTransformer.MULT_10_POW_N_PLUS_8,
    ),
)


# First extension table (VIF 0xFD), Table 12
_FirstExtensionFieldTable: tuple[_AbstractFieldDescriptor, ...] = (
    # E000 00nn: Credit of 10^(nn-3) of the nominal local legal currency units
    _TrueFieldDescriptor(
        code=0b00000000,
        mask=0b01111100,
        value_description=ValueDescription.CREDIT,
        value_transformer=ValueTransformer.MULT_10_POW_NN_MINUS_3,
    ),
    # E000 01nn: Debit of 10^(nn-3) of the nominal local legal currency units
    _TrueFieldDescriptor(
        code=0b00000100,
        mask=0b01111100,
        value_description=ValueDescription.DEBIT,
        value_transformer=ValueTransformer.MULT_10_POW_NN_MINUS_3,
    ),
    # Identification and versions (E000 1000 - E001 0001)
    _TrueFieldDescriptor(code=0x08, value_description=ValueDescription.ACCESS_NUMBER),
    _TrueFieldDescriptor(code=0x09, value_description=ValueDescription.MEDIUM),
    _TrueFieldDescriptor(code=0x0A, value_description=ValueDescription.MANUFACTURER),
    _TrueFieldDescriptor(code=0x0B, value_description=ValueDescription.PARAMETER_SET_ID),
    _TrueFieldDescriptor(code=0x0C, value_description=ValueDescription.MODEL_VERSION),
    _TrueFieldDescriptor(code=0x0D, value_description=ValueDescription.HARDWARE_VERSION),
    _TrueFieldDescriptor(code=0x0E, value_description=ValueDescription.FIRMWARE_VERSION),
    _TrueFieldDescriptor(code=0x0F, value_description=ValueDescription.SOFTWARE_VERSION),
    _TrueFieldDescriptor(code=0x10, value_description=ValueDescription.CUSTOMER_LOCATION),
    _TrueFieldDescriptor(code=0x11, value_description=ValueDescription.CUSTOMER),
    # Error flags and mask are bit fields, read unsigned
    _TrueFieldDescriptor(
        code=0x17,
        value_description=ValueDescription.ERROR_CODES,
        data_rules=DataCategory.UNSIGNED_NUMERIC,
    ),
    _TrueFieldDescriptor(
        code=0x18,
        value_description=ValueDescription.ERROR_MASK,
        data_rules=DataCategory.UNSIGNED_NUMERIC,
    ),
    _TrueFieldDescriptor(
        code=0x1A,
        value_description=ValueDescription.DIGITAL_OUTPUT,
        data_rules=DataCategory.UNSIGNED_NUMERIC,
    ),
    _TrueFieldDescriptor(
        code=0x1B,
        value_description=ValueDescription.DIGITAL_INPUT,
        data_rules=DataCategory.UNSIGNED_NUMERIC,
    ),
    _TrueFieldDescriptor(code=0x1C, value_description=ValueDescription.BAUD_RATE),
    _TrueFieldDescriptor(code=0x1D, value_description=ValueDescription.RESPONSE_DELAY_TIME),
    _TrueFieldDescriptor(code=0x1E, value_description=ValueDescription.RETRY),
    _TrueFieldDescriptor(code=0x3A, value_description=ValueDescription.DIMENSIONLESS),
    # E100 nnnn: Voltage 10^(nnnn-9) V
    _TrueFieldDescriptor(
        code=0b01000000,
        mask=0b01110000,
        value_description=ValueDescription.VOLTAGE,
        value_unit=ValueUnit.V,
        value_transformer=ValueTransformer.MULT_10_POW_NNNN_MINUS_9,
    ),
    # E101 nnnn: Current 10^(nnnn-12) A
    _TrueFieldDescriptor(
        code=0b01010000,
        mask=0b01110000,
        value_description=ValueDescription.CURRENT,
        value_unit=ValueUnit.A,
        value_transformer=ValueTransformer.MULT_10_POW_NNNN_MINUS_12,
    ),
    _TrueFieldDescriptor(code=0x60, value_description=ValueDescription.RESET_COUNTER),
    _TrueFieldDescriptor(code=0x61, value_description=ValueDescription.CUMULATION_COUNTER),
    _TrueFieldDescriptor(
        code=0x74,
        value_description=ValueDescription.REMAINING_BATTERY_LIFETIME,
        value_unit=ValueUnit.DAYS,
    ),
)


# Primary VIF codes, Table 10
_PrimaryFieldTable: tuple[_AbstractFieldDescriptor, ...] = (
    # ==========================================================================
    # Cumulative Quantities
    # ==========================================================================
    # E000 0nnn: Energy 10^(nnn-3) Wh
    _TrueFieldDescriptor(
        code=0b00000000,
        mask=0b01111000,
        value_description=ValueDescription.ENERGY,
        value_unit=ValueUnit.WH,
        value_transformer=ValueTransformer.MULT_10_POW_NNN_MINUS_3,
    ),
    # E000 1nnn: Energy 10^(nnn) J
    _TrueFieldDescriptor(
        code=0b00001000,
        mask=0b01111000,
        value_description=ValueDescription.ENERGY,
        value_unit=ValueUnit.J,
        value_transformer=ValueTransformer.MULT_10_POW_NNN,
    ),
    # E001 0nnn: Volume 10^(nnn-6) m³
    _TrueFieldDescriptor(
        code=0b00010000,
        mask=0b01111000,
        value_description=ValueDescription.VOLUME,
        value_unit=ValueUnit.M3,
        value_transformer=ValueTransformer.MULT_10_POW_NNN_MINUS_6,
    ),
    # E001 1nnn: Mass 10^(nnn-3) kg
    _TrueFieldDescriptor(
        code=0b00011000,
        mask=0b01111000,
        value_description=ValueDescription.MASS,
        value_unit=ValueUnit.KG,
        value_transformer=ValueTransformer.MULT_10_POW_NNN_MINUS_3,
    ),
    # ==========================================================================
    # Durations (nn: 00=s, 01=min, 10=h, 11=days)
    # ==========================================================================
    # E010 00nn: On time
    _TrueFieldDescriptor(
        code=0b00100000,
        mask=0b01111100,
        value_description=ValueDescription.ON_TIME,
        value_unit_transformer=ValueUnitTransformer.DURATION_NN,
    ),
    # E010 01nn: Operating time
    _TrueFieldDescriptor(
        code=0b00100100,
        mask=0b01111100,
        value_description=ValueDescription.OPERATING_TIME,
        value_unit_transformer=ValueUnitTransformer.DURATION_NN,
    ),
    # ==========================================================================
    # Rates
    # ==========================================================================
    # E010 1nnn: Power 10^(nnn-3) W
    _TrueFieldDescriptor(
        code=0b00101000,
        mask=0b01111000,
        value_description=ValueDescription.POWER,
        value_unit=ValueUnit.W,
        value_transformer=ValueTransformer.MULT_10_POW_NNN_MINUS_3,
    ),
    # E011 0nnn: Power 10^(nnn) J/h
    _TrueFieldDescriptor(
        code=0b00110000,
        mask=0b01111000,
        value_description=ValueDescription.POWER,
        value_unit=ValueUnit.J_H,
        value_transformer=ValueTransformer.MULT_10_POW_NNN,
    ),
    # E011 1nnn: Volume flow 10^(nnn-6) m³/h
    _TrueFieldDescriptor(
        code=0b00111000,
        mask=0b01111000,
        value_description=ValueDescription.FLOW,
        value_unit=ValueUnit.M3_H,
        value_transformer=ValueTransformer.MULT_10_POW_NNN_MINUS_6,
    ),
    # E100 0nnn: Volume flow ext. 10^(nnn-7) m³/min
    _TrueFieldDescriptor(
        code=0b01000000,
        mask=0b01111000,
        value_description=ValueDescription.FLOW,
        value_unit=ValueUnit.M3_MIN,
        value_transformer=ValueTransformer.MULT_10_POW_NNN_MINUS_7,
    ),
    # E100 1nnn: Volume flow ext. 10^(nnn-9) m³/s
    _TrueFieldDescriptor(
        code=0b01001000,
        mask=0b01111000,
        value_description=ValueDescription.FLOW,
        value_unit=ValueUnit.M3_S,
        value_transformer=ValueTransformer.MULT_10_POW_NNN_MINUS_9,
    ),
    # E101 0nnn: Mass flow 10^(nnn-3) kg/h
    _TrueFieldDescriptor(
        code=0b01010000,
        mask=0b01111000,
        value_description=ValueDescription.MASS_FLOW,
        value_unit=ValueUnit.KG_H,
        value_transformer=ValueTransformer.MULT_10_POW_NNN_MINUS_3,
    ),
    # ==========================================================================
    # Temperatures and pressure (nn: 10^(nn-3))
    # ==========================================================================
    # E101 10nn: Flow temperature °C
    _TrueFieldDescriptor(
        code=0b01011000,
        mask=0b01111100,
        value_description=ValueDescription.FLOW_TEMPERATURE,
        value_unit=ValueUnit.CELSIUS,
        value_transformer=ValueTransformer.MULT_10_POW_NN_MINUS_3,
    ),
    # E101 11nn: Return temperature °C
    _TrueFieldDescriptor(
        code=0b01011100,
        mask=0b01111100,
        value_description=ValueDescription.RETURN_TEMPERATURE,
        value_unit=ValueUnit.CELSIUS,
        value_transformer=ValueTransformer.MULT_10_POW_NN_MINUS_3,
    ),
    # E110 00nn: Temperature difference K
    _TrueFieldDescriptor(
        code=0b01100000,
        mask=0b01111100,
        value_description=ValueDescription.TEMPERATURE_DIFFERENCE,
        value_unit=ValueUnit.KELVIN,
        value_transformer=ValueTransformer.MULT_10_POW_NN_MINUS_3,
    ),
    # E110 01nn: External temperature °C
    _TrueFieldDescriptor(
        code=0b01100100,
        mask=0b01111100,
        value_description=ValueDescription.EXTERNAL_TEMPERATURE,
        value_unit=ValueUnit.CELSIUS,
        value_transformer=ValueTransformer.MULT_10_POW_NN_MINUS_3,
    ),
    # E110 10nn: Pressure bar
    _TrueFieldDescriptor(
        code=0b01101000,
        mask=0b01111100,
        value_description=ValueDescription.PRESSURE,
        value_unit=ValueUnit.BAR,
        value_transformer=ValueTransformer.MULT_10_POW_NN_MINUS_3,
    ),
    # ==========================================================================
    # Points in time
    # ==========================================================================
    # E110 1100: Date (type G)
    _TrueFieldDescriptor(
        code=0b01101100,
        value_description=ValueDescription.DATE,
        data_rules=DataCategory.CALENDAR_DATE,
    ),
    # E110 1101: Date and time (types F, I) or time (type J)
    _TrueFieldDescriptor(
        code=0b01101101,
        value_description=ValueDescription.DATETIME,
        data_rules=DataCategory.TIMESTAMP,
    ),
    # E110 1110: Units for H.C.A.
    _TrueFieldDescriptor(
        code=0b01101110,
        value_description=ValueDescription.UNITS_FOR_HCA,
    ),
    # E111 00nn: Averaging duration
    _TrueFieldDescriptor(
        code=0b01110000,
        mask=0b01111100,
        value_description=ValueDescription.AVERAGING_DURATION,
        value_unit_transformer=ValueUnitTransformer.DURATION_NN,
    ),
    # E111 01nn: Actuality duration
    _TrueFieldDescriptor(
        code=0b01110100,
        mask=0b01111100,
        value_description=ValueDescription.ACTUALITY_DURATION,
        value_unit_transformer=ValueUnitTransformer.DURATION_NN,
    ),
    # ==========================================================================
    # Identification
    # ==========================================================================
    _TrueFieldDescriptor(
        code=0b01111000,
        value_description=ValueDescription.FABRICATION_NUMBER,
    ),
    _TrueFieldDescriptor(
        code=0b01111001,
        value_description=ValueDescription.ENHANCED_IDENTIFICATION,
    ),
    _TrueFieldDescriptor(
        code=0b01111010,
        value_description=ValueDescription.BUS_ADDRESS,
        data_rules=DataCategory.UNSIGNED_NUMERIC,
    ),
    # ==========================================================================
    # Special VIFs
    # ==========================================================================
    # 0xFB: Second extension table
    _ExtensionFieldDescriptor(
        code=0b11111011,
        extension_table=_SecondExtensionFieldTable,
    ),
    # E111 1100: Plain text unit
    _PlainTextFieldDescriptor(
        code=0b01111100,
        value_description=ValueDescription.PLAIN_TEXT,
    ),
    # 0xFD: First extension table
    _ExtensionFieldDescriptor(
        code=0b11111101,
        extension_table=_FirstExtensionFieldTable,
    ),
    # E111 1111: Manufacturer specific
    _ManufacturerFieldDescriptor(
        code=0b01111111,
    ),
)


# =============================================================================
# VIF/VIFE Helper Functions
# =============================================================================


@lru_cache(maxsize=128)
def _find_field_descriptor(
    field_code: int,
    field_table: tuple[_AbstractFieldDescriptor, ...],
) -> _AbstractFieldDescriptor:
    """Find the matching field descriptor for a VIF/VIFE field code.

    Raises:
        ValueError: If no matching descriptor is found in the table
    """
    for field_descriptor in field_table:
        if (field_code & field_descriptor.mask) == field_descriptor.code:
            return field_descriptor

    raise ValueError(f"VIF/VIFE code 0x{field_code:02X} not found in VIF/VIFE tables")


def _decode_ascii_unit(data: bytes) -> str:
    """Decode a plain text unit, transmitted rightmost character first.

    Reference: EN 13757-3:2018, Annex C.2
    """
    return bytes(reversed(data)).decode("ascii")


# =============================================================================
# VIF/VIFE Classes
# =============================================================================


class VIF:
    """Base class for Value Information Field (VIF).

    The factory __new__ picks TrueVIF, PlainTextVIF, ExtensionVIF or
    ManufacturerVIF from the primary table.

    Attributes:
        field_code: The VIF byte value (0x00-0xFF)
        chain_position: Position in chain (0 for VIF)
        next_field: Next VIFE in chain
        last_field: True if extension bit is 0 (no more VIFE bytes follow)
    """

    field_code: int

    chain_position: int = 0
    next_field: VIFE | None = None

    last_field: bool

    _next_table: tuple[_AbstractFieldDescriptor, ...] = _CombinableFieldTable

    def __new__(cls, field_code: int) -> VIF:
        field_descriptor = _find_field_descriptor(field_code, _PrimaryFieldTable)

        if isinstance(field_descriptor, _PlainTextFieldDescriptor):
            return object.__new__(PlainTextVIF)

        if isinstance(field_descriptor, _TrueFieldDescriptor):
            return object.__new__(TrueVIF)

        if isinstance(field_descriptor, _ExtensionFieldDescriptor):
            return object.__new__(ExtensionVIF)

        if isinstance(field_descriptor, _ManufacturerFieldDescriptor):
            return object.__new__(ManufacturerVIF)

        raise RuntimeError(f"Field descriptor type {type(field_descriptor).__name__} not recognized")

    def __init__(self, field_code: int) -> None:
        self.field_code = field_code

        self.last_field = self.field_code & VIF_EXTENSION_BIT_MASK == 0

    def _descriptor(self) -> _AbstractFieldDescriptor:
        return _find_field_descriptor(self.field_code, _PrimaryFieldTable)

    def create_next_vife(self, field_code: int) -> VIFE:
        return VIFE(field_code, self)

    @staticmethod
    def from_stream(stream: ByteStream) -> tuple[VIF, *tuple[VIFE, ...]]:
        """Read a complete VIF/VIFE chain.

        Raises:
            TruncatedPayloadError: If the chain is cut short
            ValueError: If a field code is not valid
        """
        vif = VIF(stream.read_u8())

        vife: list[VIFE] = []

        current_field: VIF = vif
        while not current_field.last_field:
            current_field = current_field.create_next_vife(stream.read_u8())
            vife.append(current_field)

        return (vif, *vife)


class _DescribingField:
    """Mixin for fields that set the description, unit and data rules of a value."""

    value_description: ValueDescription
    value_unit: str
    value_transformer: ValueTransformer | None
    data_rules: DataCategory

    def _describe(self, field_code: int, field_descriptor: _AbstractFieldDescriptor) -> None:
        if not isinstance(field_descriptor, _TrueFieldDescriptor):
            raise RuntimeError(f"Descriptor {type(field_descriptor).__name__} does not describe a value")

        self.value_description = field_descriptor.value_description

        self.value_unit = field_descriptor.value_unit
        if field_descriptor.value_unit_transformer is not None:
            self.value_unit = field_descriptor.value_unit_transformer(self.value_unit, field_code)

        self.value_transformer = field_descriptor.value_transformer

        self.data_rules = field_descriptor.data_rules


class TrueVIF(_DescribingField, VIF):
    """VIF from the primary table that defines description and unit."""

    def __init__(self, field_code: int) -> None:
        super().__init__(field_code)

        self._describe(field_code, self._descriptor())


class PlainTextVIF(TrueVIF):
    """VIF 0x7C: the unit is an ASCII string following the VIB."""


class ExtensionVIF(VIF):
    """VIF 0xFB/0xFD pointing to an extension table for the next VIFE."""

    def __init__(self, field_code: int) -> None:
        super().__init__(field_code)

        if self.last_field:
            raise ValueError(f"Extension VIF 0x{field_code:02X} must be followed by a VIFE")

        field_descriptor = self._descriptor()
        if not isinstance(field_descriptor, _ExtensionFieldDescriptor):
            raise RuntimeError("ExtensionVIF used with incorrect field descriptor type")

        self._next_table = field_descriptor.extension_table


class ManufacturerVIF(VIF):
    """VIF 0x7F: value interpretation is manufacturer specific."""

    _next_table = _ManufacturerFieldTable


class VIFE(VIF):
    """Base class for Value Information Field Extension (VIFE).

    The table used for the lookup comes from the previous field: an extension
    VIF selects its extension table, any describing field selects the
    combinable table.
    """

    prev_field: VIF

    def __new__(cls, field_code: int, prev_field: VIF) -> VIFE:
        field_descriptor = _find_field_descriptor(field_code, prev_field._next_table)

        if isinstance(field_descriptor, _TrueFieldDescriptor):
            return object.__new__(TrueVIFE)

        if isinstance(field_descriptor, _ExtensionFieldDescriptor):
            return object.__new__(ExtensionVIFE)

        if isinstance(field_descriptor, _CombinableFieldDescriptor):
            return object.__new__(CombinableVIFE)

        if isinstance(field_descriptor, _ManufacturerFieldDescriptor):
            return object.__new__(ManufacturerVIFE)

        raise RuntimeError(f"Field descriptor type {type(field_descriptor).__name__} not recognized")

    def __init__(self, field_code: int, prev_field: VIF) -> None:
        if prev_field.last_field:
            raise ValueError("Cannot extend VIF/VIFE chain past last field")

        if prev_field.chain_position >= VIFE_MAXIMUM_CHAIN_LENGTH:
            raise ValueError("Exceeded maximum VIFE chain length")

        self.field_code = field_code

        self.last_field = self.field_code & VIF_EXTENSION_BIT_MASK == 0

        self.prev_field = prev_field
        self.prev_field.next_field = self

        self.chain_position = self.prev_field.chain_position + 1

        self._field_descriptor = _find_field_descriptor(field_code, prev_field._next_table)

    def _descriptor(self) -> _AbstractFieldDescriptor:
        return self._field_descriptor


class TrueVIFE(_DescribingField, VIFE):
    """First VIFE after 0xFB/0xFD, describing the value."""

    def __init__(self, field_code: int, prev_field: VIF) -> None:
        super().__init__(field_code, prev_field)

        self._describe(field_code, self._descriptor())


class ExtensionVIFE(VIFE):
    """Combinable VIFE 0xFC, the next VIFE comes from the combinable extension table."""

    def __init__(self, field_code: int, prev_field: VIF) -> None:
        super().__init__(field_code, prev_field)

        field_descriptor = self._descriptor()
        if not isinstance(field_descriptor, _ExtensionFieldDescriptor):
            raise RuntimeError("ExtensionVIFE used with incorrect field descriptor type")

        self._next_table = field_descriptor.extension_table


class CombinableVIFE(VIFE):
    """Combinable VIFE, optionally correcting the value."""

    value_transformer: ValueTransformer | None

    def __init__(self, field_code: int, prev_field: VIF) -> None:
        super().__init__(field_code, prev_field)

        field_descriptor = self._descriptor()
        if not isinstance(field_descriptor, _CombinableFieldDescriptor):
            raise RuntimeError("CombinableVIFE used with incorrect field descriptor type")

        self.value_transformer = field_descriptor.value_transformer


class ManufacturerVIFE(VIFE):
    """Manufacturer specific VIFE, every following VIFE is manufacturer specific too."""

    _next_table = _ManufacturerFieldTable


# =============================================================================
# VIB
# =============================================================================


class VIB:
    """Value Information Block: a VIF/VIFE chain and what it says about the value.

    Attributes:
        fields: The VIF followed by its VIFEs
        description: Value description
        unit: Unit of the value, the ASCII text for plain text VIFs
        data_rules: Data categories accepted for the data field
        manufacturer_specific: True if the VIF is manufacturer specific
    """

    fields: tuple[VIF, ...]

    description: ValueDescription

    unit: str

    data_rules: DataCategory

    manufacturer_specific: bool

    def __init__(self, vif: VIF, *vife: VIFE, plain_text_unit: str | None = None) -> None:
        self.fields = (vif, *vife)

        self.manufacturer_specific = isinstance(vif, ManufacturerVIF)

        self._corrections: list[tuple[ValueTransformer, int]] = []

        describing = [field for field in self.fields if isinstance(field, _DescribingField)]

        if describing:
            field = describing[0]
            self.description = field.value_description
            self.unit = field.value_unit
            self.data_rules = field.data_rules
            if field.value_transformer is not None:
                self._corrections.append((field.value_transformer, field.field_code))
        elif self.manufacturer_specific:
            self.description = ValueDescription.MANUFACTURER_SPECIFIC
            self.unit = ValueUnit.NONE
            self.data_rules = DataCategory.NUMERIC
        else:
            raise ValueError("VIF/VIFE chain does not describe a value")

        if isinstance(vif, PlainTextVIF):
            if plain_text_unit is None:
                raise ValueError("Plain text VIF requires a unit text")
            self.unit = plain_text_unit

        for field in vife:
            if isinstance(field, CombinableVIFE) and field.value_transformer is not None:
                self._corrections.append((field.value_transformer, field.field_code))

    def transform(self, value: float) -> float:
        """Apply the scaling of the VIF and any correction VIFEs in chain order."""
        for value_transformer, field_code in self._corrections:
            value = value_transformer(value, field_code)
        return value

    @staticmethod
    def from_stream(stream: ByteStream) -> VIB:
        """Read a VIF/VIFE chain, plus the ASCII unit of a plain text VIF."""
        vif, *vife = VIF.from_stream(stream)

        plain_text_unit = None
        if isinstance(vif, PlainTextVIF):
            plain_text_unit = _decode_ascii_unit(stream.read(stream.read_u8()))

        return VIB(vif, *vife, plain_text_unit=plain_text_unit)
