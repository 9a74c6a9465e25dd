"""DIF (Data Information Field) chain parsing.

Every data record starts with a DIF, optionally followed by up to ten DIFEs:

    DIF (1 byte) + optional DIFEs (0-10 bytes) + optional FinalDIFE (1 byte)

The DIF carries the data field length, the function field and the first bit
of the storage number. Each DIFE adds four storage number bits, two tariff
bits and one subunit bit. Bit 7 of every field says whether another DIFE
follows.

Only slave-to-master records are decoded here, so readout selection (0x08)
and global readout (0x7F) are rejected.

Reference: EN 13757-3:2018
    - Table 4 (page 13): Data field encoding
    - Table 6 (page 14): Special function codes
    - Table 7 (page 14): Function field encoding
    - Table 8 (page 14): DIFE encoding
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass
from enum import Flag, auto
from functools import lru_cache

from ..stream import ByteStream
from .data import DataType
from .value import ValueFunction

# =============================================================================
# DIF Constants (EN 13757-3:2018)
# =============================================================================


DIF_EXTENSION_BIT_MASK = 0b10000000  # Bit 7: extension bit (more DIFE bytes follow)
DIF_FUNCTION_BIT_MASK = 0b00110000  # Bits 4-5: function

DIF_STORAGE_NUMBER_BIT_MASK = 0b01000000  # Bit 6: LSB of storage number
DIF_STORAGE_NUMBER_BIT_SHIFT = 6
DIF_STORAGE_NUMBER_BIT_LENGTH = 1

DIFE_EXTENSION_BIT_MASK = 0b10000000  # Bit 7: extension bit (more DIFE bytes follow)

DIFE_MAXIMUM_CHAIN_LENGTH = 10  # Maximum number of chained DIFE bytes

DIFE_STORAGE_NUMBER_BIT_MASK = 0b00001111  # Bits 0-3: storage number
DIFE_STORAGE_NUMBER_BIT_LENGTH = 4

DIFE_TARIFF_BIT_MASK = 0b00110000  # Bits 4-5: tariff
DIFE_TARIFF_BIT_SHIFT = 4
DIFE_TARIFF_BIT_LENGTH = 2

DIFE_SUBUNIT_BIT_MASK = 0b01000000  # Bit 6: subunit
DIFE_SUBUNIT_BIT_SHIFT = 6
DIFE_SUBUNIT_BIT_LENGTH = 1

DIFE_FINAL_CODE = 0b00000000  # Storage number is a register number


class DIFSpecialFunction(Flag):
    MANUFACTURER_DATA_HEADER = auto()
    MORE_RECORDS_FOLLOW = auto()
    IDLE_FILLER = auto()


# =============================================================================
# DIF Descriptors
# =============================================================================


@dataclass(frozen=True, kw_only=True)
class _AbstractFieldDescriptor(ABC):
    code: int  # DIF byte value
    mask: int  # Bit mask for pattern matching


@dataclass(frozen=True, kw_only=True)
class _DataFieldDescriptor(_AbstractFieldDescriptor):
    mask: int = 0b00001111

    data_types: tuple[DataType, ...]  # Candidate interpretations, preferred first


@dataclass(frozen=True, kw_only=True)
class _SpecialFieldDescriptor(_AbstractFieldDescriptor):
    mask: int = 0b11111111

    function: DIFSpecialFunction


_FieldTable: tuple[_AbstractFieldDescriptor, ...] = (
    # ==========================================================================
    # Data types (Data Field 0x00 - 0x0E): Table 4
    # ==========================================================================
    _DataFieldDescriptor(code=0x00, data_types=(DataType.NONE,)),
    _DataFieldDescriptor(code=0x01, data_types=(DataType.B_1, DataType.C_1)),
    _DataFieldDescriptor(code=0x02, data_types=(DataType.B_2, DataType.C_2, DataType.G_2)),
    _DataFieldDescriptor(code=0x03, data_types=(DataType.B_3, DataType.C_3, DataType.J_3)),
    _DataFieldDescriptor(code=0x04, data_types=(DataType.B_4, DataType.C_4, DataType.F_4)),
    _DataFieldDescriptor(code=0x05, data_types=(DataType.H_4,)),
    _DataFieldDescriptor(code=0x06, data_types=(DataType.B_6, DataType.C_6, DataType.I_6)),
    _DataFieldDescriptor(code=0x07, data_types=(DataType.B_8, DataType.C_8)),
    # 0x08 (selection for readout) is master to slave only
    _DataFieldDescriptor(code=0x09, data_types=(DataType.A_1,)),
    _DataFieldDescriptor(code=0x0A, data_types=(DataType.A_2,)),
    _DataFieldDescriptor(code=0x0B, data_types=(DataType.A_3,)),
    _DataFieldDescriptor(code=0x0C, data_types=(DataType.A_4,)),
    _DataFieldDescriptor(code=0x0D, data_types=(DataType.LVAR,)),
    _DataFieldDescriptor(code=0x0E, data_types=(DataType.A_6,)),
    # ==========================================================================
    # Data Field 0x0F: Special functions (Table 6)
    # ==========================================================================
    _SpecialFieldDescriptor(
        code=0x0F,
        function=DIFSpecialFunction.MANUFACTURER_DATA_HEADER,
    ),
    _SpecialFieldDescriptor(
        code=0x1F,
        function=DIFSpecialFunction.MANUFACTURER_DATA_HEADER | DIFSpecialFunction.MORE_RECORDS_FOLLOW,
    ),
    _SpecialFieldDescriptor(
        code=0x2F,
        function=DIFSpecialFunction.IDLE_FILLER,
    ),
)


_FunctionTable: dict[int, ValueFunction] = {
    0b00000000: ValueFunction.CURRENT,
    0b00010000: ValueFunction.MAXIMUM,
    0b00100000: ValueFunction.MINIMUM,
    0b00110000: ValueFunction.ERROR,
}


@lru_cache(maxsize=32)
def _find_field_descriptor(field_code: int) -> _AbstractFieldDescriptor:
    """Find the matching field descriptor for a DIF code.

    Raises:
        ValueError: If no matching descriptor is found
    """
    for field_descriptor in _FieldTable:
        if (field_code & field_descriptor.mask) == field_descriptor.code:
            return field_descriptor

    raise ValueError(f"Field descriptor for DIF code 0x{field_code:02X} not found in DIF table")


# =============================================================================
# DIF/DIFE Classes
# =============================================================================


class DIF:
    """Base class for Data Information Field (DIF).

    The factory __new__ returns a DataDIF or SpecialDIF depending on the
    field code.

    Attributes:
        field_code: The DIF byte value (0x00-0xFF)
        chain_position: Position in DIF/DIFE chain (0 for DIF)
        next_field: Next DIFE in chain (None if last_field is True)
        last_field: True if no more DIFE bytes follow
    """

    field_code: int

    chain_position: int = 0
    next_field: DIFE | None = None
    last_field: bool = True

    def __new__(cls, field_code: int) -> DIF:
        field_descriptor = _find_field_descriptor(field_code)

        if isinstance(field_descriptor, _DataFieldDescriptor):
            return object.__new__(DataDIF)

        if isinstance(field_descriptor, _SpecialFieldDescriptor):
            return object.__new__(SpecialDIF)

        raise RuntimeError("DIF field descriptor type not recognized")

    def __init__(self, field_code: int) -> None:
        self.field_code = field_code

    def create_next_dife(self, field_code: int) -> DIFE:
        return DIFE(field_code, self)

    @staticmethod
    def from_stream(stream: ByteStream) -> tuple[DIF, *tuple[DIFE, ...]]:
        """Read a complete DIF/DIFE chain.

        Raises:
            TruncatedPayloadError: If the chain is cut short
            ValueError: If a field code is not valid
        """
        dif = DIF(stream.read_u8())

        dife_list: list[DIFE] = []

        current_field: DIF = dif
        while not current_field.last_field:
            current_field = current_field.create_next_dife(stream.read_u8())
            dife_list.append(current_field)

        return (dif, *dife_list)


class DataDIF(DIF):
    """DIF of a regular data record.

    Attributes:
        data_types: Candidate data types for the data field
        value_function: Function field (current, maximum, minimum, error state)
        storage_number: LSB of storage number (bit 6)
    """

    data_types: tuple[DataType, ...]

    value_function: ValueFunction

    storage_number: int

    def __init__(self, field_code: int) -> None:
        super().__init__(field_code)

        field_descriptor = _find_field_descriptor(self.field_code)

        if not isinstance(field_descriptor, _DataFieldDescriptor):
            raise ValueError("Incorrect field descriptor type for DataDIF")

        self.data_types = field_descriptor.data_types

        self.storage_number = (self.field_code & DIF_STORAGE_NUMBER_BIT_MASK) >> DIF_STORAGE_NUMBER_BIT_SHIFT

        self.value_function = _FunctionTable[self.field_code & DIF_FUNCTION_BIT_MASK]

        self.last_field = self.field_code & DIF_EXTENSION_BIT_MASK == 0


class SpecialDIF(DIF):
    """DIF with a special function (manufacturer data or idle filler).

    Special DIFs never have an extension.
    """

    special_function: DIFSpecialFunction

    def __init__(self, field_code: int) -> None:
        super().__init__(field_code)

        field_descriptor = _find_field_descriptor(self.field_code)

        if not isinstance(field_descriptor, _SpecialFieldDescriptor):
            raise ValueError("Incorrect field descriptor type for SpecialDIF")

        self.special_function = field_descriptor.function


class DIFE(DIF):
    """Base class for Data Information Field Extension (DIFE).

    The factory __new__ returns a FinalDIFE for 0x00 and a DataDIFE otherwise.

    Reference: EN 13757-3:2018, section 6.3.7, Table 8
    """

    prev_field: DIF

    def __new__(cls, field_code: int, prev_field: DIF) -> DIFE:
        if field_code == DIFE_FINAL_CODE:
            return object.__new__(FinalDIFE)
        return object.__new__(DataDIFE)

    def __init__(self, field_code: int, prev_field: DIF) -> None:
        self.field_code = field_code

        if prev_field.last_field:
            raise ValueError("Cannot extend DIF/DIFE chain past last field")

        if prev_field.next_field is not None:
            raise ValueError("Previous field already has a next field assigned")

        self.prev_field = prev_field
        self.prev_field.next_field = self

        self.chain_position = self.prev_field.chain_position + 1

        self.last_field = self.field_code & DIFE_EXTENSION_BIT_MASK == 0


class DataDIFE(DIFE):
    """DIFE extending storage number, tariff and subunit.

    The bits of each DIFE are placed above those of the previous fields, so
    the n-th DIFE contributes storage number bits 4n-3..4n, tariff bits
    2n-2..2n-1 and subunit bit n-1.
    """

    storage_number: int

    subunit: int

    tariff: int

    def __init__(self, field_code: int, prev_field: DIF) -> None:
        if prev_field.chain_position >= DIFE_MAXIMUM_CHAIN_LENGTH:
            raise ValueError("Exceeded maximum DIFE chain length")

        super().__init__(field_code, prev_field)

        position = self.chain_position - 1

        storage_bits = self.field_code & DIFE_STORAGE_NUMBER_BIT_MASK
        self.storage_number = storage_bits << (DIFE_STORAGE_NUMBER_BIT_LENGTH * position + DIF_STORAGE_NUMBER_BIT_LENGTH)

        tariff_bits = (self.field_code & DIFE_TARIFF_BIT_MASK) >> DIFE_TARIFF_BIT_SHIFT
        self.tariff = tariff_bits << (DIFE_TARIFF_BIT_LENGTH * position)

        subunit_bit = (self.field_code & DIFE_SUBUNIT_BIT_MASK) >> DIFE_SUBUNIT_BIT_SHIFT
        self.subunit = subunit_bit << (DIFE_SUBUNIT_BIT_LENGTH * position)


class FinalDIFE(DIFE):
    """Final DIFE (0x00) marking the storage number as a register number.

    It contributes no storage, tariff or subunit bits.

    Reference: EN 13757-3:2018, section 6.3.5
    """

    def __init__(self, field_code: int, prev_field: DIF) -> None:
        if prev_field.chain_position > DIFE_MAXIMUM_CHAIN_LENGTH:
            raise ValueError("Exceeded maximum DIFE + final DIFE chain length")

        super().__init__(field_code, prev_field)
