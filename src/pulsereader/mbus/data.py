"""Data field types and decoders for M-Bus data records.

The DIF announces the length of a data field and a set of candidate
interpretations (a 16 bit field may be a signed integer, an unsigned integer
or a date). The VIF then states which kinds of data it accepts, and the first
candidate of an accepted kind wins:

    select_data_type((DataType.B_2, DataType.C_2, DataType.G_2), DataCategory.DATE) -> DataType.G_2

Invalid markers defined by the standard (0xFF.. for unsigned, the most
negative value for signed, NaN for reals, the IV bit for dates) decode to
None. Recurring date/time patterns cannot be expressed as a single point in
time and decode to None as well.

Reference: EN 13757-3:2018
    - Annex A: Data types and encoding
    - Table 4 (page 13): Data field encoding
    - Table 5 (page 13): LVAR interpretation
"""

from __future__ import annotations

import math
import struct
from collections.abc import Callable
from datetime import date, datetime, time
from enum import Enum, Flag
from typing import Any, NamedTuple

from ..stream import ByteStream

# =============================================================================
# Numeric Data Type Decoders
# =============================================================================


def _decode_type_a(data: bytes) -> int | None:
    """Decode Type A: Unsigned BCD (Binary Coded Decimal).

    Each nibble represents a decimal digit, least significant digit first.

    Special values:
        - Nibbles A-E: Invalid/error marker (returns None)
        - Nibble F in MSB position: Negative number marker

    Reference: EN 13757-3:2018, Annex A, Table A.1
    """
    value = int.from_bytes(data, byteorder="little")

    result = 0
    multiplier = 1

    while value > 0:
        digit = value & 0x0F
        value >>= 4

        if digit > 9:
            if value == 0 and digit == 0x0F:
                return -result

            return None

        result += digit * multiplier
        multiplier *= 10

    return result


def _decode_type_b(data: bytes) -> int | None:
    """Decode Type B: Signed binary integer (two's complement, little-endian).

    The most negative value for the bit width is the invalid marker.

    Reference: EN 13757-3:2018, Annex A, Table A.2
    """
    value = int.from_bytes(data, byteorder="little", signed=True)

    if value == -(1 << (len(data) * 8 - 1)):
        return None

    return value


def _decode_type_c(data: bytes) -> int | None:
    """Decode Type C: Unsigned binary integer (little-endian).

    The maximum value for the bit width is the invalid marker.

    Reference: EN 13757-3:2018, Annex A, Table A.3
    """
    value = int.from_bytes(data, byteorder="little")

    if value == (1 << (len(data) * 8)) - 1:
        return None

    return value


def _decode_type_h(data: bytes) -> float | None:
    """Decode Type H: IEEE 754 single precision float (little-endian).

    Reference: EN 13757-3:2018, Annex A, Table A.7
    """
    if len(data) != 4:
        raise ValueError(f"Invalid data length for float: {len(data)} bytes (expected 4)")

    value: float = struct.unpack("<f", data)[0]

    if math.isnan(value):
        return None

    return value


# =============================================================================
# Date/Time Data Type Decoders
# =============================================================================


def _full_year(hundred_year: int, year: int) -> int:
    # Meters with a two digit year count 00-80 as 2000-2080
    full_year = 1900 + 100 * hundred_year + year
    if hundred_year == 0 and year <= 80:
        full_year += 100
    return full_year


def _decode_type_g(data: bytes) -> date | None:
    """Decode Type G: Date CP16 (2 bytes).

    Reference: EN 13757-3:2018, Annex A, Table A.6

    Raises:
        ValueError: If data is not 2 bytes or contains invalid date values
    """
    if len(data) != 2:
        raise ValueError(f"Invalid data length for date: {len(data)} bytes (expected 2)")

    if data[0] == 0xFF and data[1] == 0xFF:
        return None

    day = data[0] & 0b00011111  # Bits 0-4
    month = data[1] & 0b00001111  # Bits 8-11
    year = ((data[1] >> 1) & 0b01111000) | (data[0] >> 5)  # Bits 12-15 and 5-7

    if month != 15 and not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")

    if year != 127 and not 0 <= year <= 99:
        raise ValueError(f"Invalid year: {year}")

    if day == 0 or month == 15 or year == 127:
        return None

    return date(2000 + year, month, day)


def _decode_type_f(data: bytes) -> datetime | None:
    """Decode Type F: Date and Time CP32 (4 bytes), minute resolution.

    Reference: EN 13757-3:2018, Annex A, Table A.5

    Raises:
        ValueError: If data is not 4 bytes or contains invalid time/date values
    """
    if len(data) != 4:
        raise ValueError(f"Invalid data length for datetime: {len(data)} bytes (expected 4)")

    # IV bit
    if data[0] & 0b10000000:
        return None

    minute = data[0] & 0b00111111  # Bits 0-5
    hour = data[1] & 0b00011111  # Bits 8-12
    hundred_year = (data[1] >> 5) & 0b00000011  # Bits 13-14
    day = data[2] & 0b00011111  # Bits 16-20
    month = data[3] & 0b00001111  # Bits 24-27
    year = ((data[3] >> 1) & 0b01111000) | (data[2] >> 5)  # Bits 21-23 and 28-31

    if minute != 63 and not 0 <= minute <= 59:
        raise ValueError(f"Invalid minute: {minute}")

    if hour != 31 and not 0 <= hour <= 23:
        raise ValueError(f"Invalid hour: {hour}")

    if month != 15 and not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")

    if year != 127 and not 0 <= year <= 99:
        raise ValueError(f"Invalid year: {year}")

    if minute == 63 or hour == 31 or day == 0 or month == 15 or year == 127:
        return None

    return datetime(_full_year(hundred_year, year), month, day, hour, minute)


def _decode_type_j(data: bytes) -> time | None:
    """Decode Type J: Time CP24 (3 bytes).

    Reference: EN 13757-3:2018, Annex A, Table A.9
    """
    if len(data) != 3:
        raise ValueError(f"Invalid data length for time: {len(data)} bytes (expected 3)")

    if data == b"\xff\xff\xff":
        return None

    second = data[0] & 0b00111111
    minute = data[1] & 0b00111111
    hour = data[2] & 0b00011111

    if second != 63 and not 0 <= second <= 59:
        raise ValueError(f"Invalid second: {second}")

    if minute != 63 and not 0 <= minute <= 59:
        raise ValueError(f"Invalid minute: {minute}")

    if hour != 31 and not 0 <= hour <= 23:
        raise ValueError(f"Invalid hour: {hour}")

    if second == 63 or minute == 63 or hour == 31:
        return None

    return time(hour, minute, second)


def _decode_type_i(data: bytes) -> datetime | None:
    """Decode Type I: Date and Time CP48 (6 bytes), second resolution.

    Year is offset from 2000.

    Reference: EN 13757-3:2018, Annex A, Table A.8
    """
    if len(data) != 6:
        raise ValueError(f"Invalid data length for datetime: {len(data)} bytes (expected 6)")

    # IV bit (bit 7 of byte 1)
    if data[1] & 0b10000000:
        return None

    second = data[0] & 0b00111111  # Bits 0-5
    minute = data[1] & 0b00111111  # Bits 8-13
    hour = data[2] & 0b00011111  # Bits 16-20
    day = data[3] & 0b00011111  # Bits 24-28
    year = ((data[4] >> 4) << 3) | (data[3] >> 5)  # Bits 29-31 and 36-39
    month = data[4] & 0b00001111  # Bits 32-35

    if second != 63 and not 0 <= second <= 59:
        raise ValueError(f"Invalid second: {second}")

    if minute != 63 and not 0 <= minute <= 59:
        raise ValueError(f"Invalid minute: {minute}")

    if hour != 31 and not 0 <= hour <= 23:
        raise ValueError(f"Invalid hour: {hour}")

    if month != 0 and not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")

    if year != 127 and not 0 <= year <= 99:
        raise ValueError(f"Invalid year: {year}")

    if second == 63 or minute == 63 or hour == 31 or day == 0 or month == 0 or year == 127:
        return None

    return datetime(2000 + year, month, day, hour, minute, second)


# =============================================================================
# LVAR Decoders
# =============================================================================


def _decode_lvar_text(data: bytes) -> str:
    """Decode an ISO/IEC 8859-1 text string (LVAR 0x00-0xBF)."""
    return data.decode("iso-8859-1")


def _decode_lvar_positive_bcd(data: bytes) -> int | None:
    value = _decode_type_a(data)

    if value is not None and value < 0:
        raise ValueError(f"Expected positive BCD number, got negative value: {value}")

    return value


def _decode_lvar_negative_bcd(data: bytes) -> int | None:
    value = _decode_type_a(data)

    if value is None:
        return None

    if value < 0:
        raise ValueError(f"LVAR negative BCD should not have F-nibble sign marker, got BCD value: {value}")

    return -value


class _LVARDescriptor(NamedTuple):
    code_range: range  # Range of LVAR codes this descriptor handles
    length_calculator: Callable[[int], int]  # Takes LVAR byte value, returns data length in bytes
    decoder: Callable[[bytes], Any]


class LVARType(Enum):
    """Interpretation of variable length data, selected by the LVAR byte.

    Reference: EN 13757-3:2018, Table 5
    """

    # 0x00-0xBF: 8-bit text string, LVAR characters
    TEXT_STRING = _LVARDescriptor(
        code_range=range(0x00, 0xC0),
        length_calculator=lambda lvar: lvar,
        decoder=_decode_lvar_text,
    )

    # 0xC0-0xC9: Positive BCD number, (LVAR - 0xC0) bytes
    POSITIVE_BCD = _LVARDescriptor(
        code_range=range(0xC0, 0xCA),
        length_calculator=lambda lvar: lvar - 0xC0,
        decoder=_decode_lvar_positive_bcd,
    )

    # 0xD0-0xD9: Negative BCD number, (LVAR - 0xD0) bytes
    NEGATIVE_BCD = _LVARDescriptor(
        code_range=range(0xD0, 0xDA),
        length_calculator=lambda lvar: lvar - 0xD0,
        decoder=_decode_lvar_negative_bcd,
    )

    # 0xE0-0xEF: Binary number, (LVAR - 0xE0) bytes
    BINARY_SMALL = _LVARDescriptor(
        code_range=range(0xE0, 0xF0),
        length_calculator=lambda lvar: lvar - 0xE0,
        decoder=_decode_type_c,
    )

    # 0xF0-0xF4: Binary number, 4 * (LVAR - 0xEC) bytes
    BINARY_LARGE = _LVARDescriptor(
        code_range=range(0xF0, 0xF5),
        length_calculator=lambda lvar: 4 * (lvar - 0xEC),
        decoder=_decode_type_c,
    )

    # 0xF5: Binary number, 48 bytes
    BINARY_48 = _LVARDescriptor(
        code_range=range(0xF5, 0xF6),
        length_calculator=lambda _: 48,
        decoder=_decode_type_c,
    )

    # 0xF6: Binary number, 64 bytes
    BINARY_64 = _LVARDescriptor(
        code_range=range(0xF6, 0xF7),
        length_calculator=lambda _: 64,
        decoder=_decode_type_c,
    )

    @classmethod
    def from_code(cls, lvar: int) -> LVARType:
        for lvar_type in cls:
            if lvar in lvar_type.value.code_range:
                return lvar_type

        raise ValueError(f"Reserved LVAR code 0x{lvar:02X}")

    def read(self, stream: ByteStream, lvar: int) -> Any:
        return self.value.decoder(stream.read(self.value.length_calculator(lvar)))


# =============================================================================
# Data Types
# =============================================================================


class DataCategory(Flag):
    """Kind of data a field holds, used to match DIF candidates against VIF rules."""

    NONE = 0b000000001
    BCD = 0b000000010
    SIGNED = 0b000000100
    UNSIGNED = 0b000001000
    REAL = 0b000010000
    DATE = 0b000100000
    DATE_TIME = 0b001000000
    TIME = 0b010000000
    VARIABLE = 0b100000000

    # Accepted by the VIF families
    NUMERIC = NONE | BCD | SIGNED | REAL | VARIABLE
    UNSIGNED_NUMERIC = NONE | BCD | UNSIGNED | REAL | VARIABLE
    CALENDAR_DATE = NONE | DATE
    TIMESTAMP = NONE | DATE_TIME | TIME


class _DataTypeDescriptor(NamedTuple):
    category: DataCategory
    length: int | None  # Byte length (None for variable length)
    decoder: Callable[[bytes], Any] | None


class DataType(Enum):
    """Concrete M-Bus data types.

    Reference: EN 13757-3:2018, Annex A, Table 4
    """

    NONE = _DataTypeDescriptor(DataCategory.NONE, 0, None)

    # Type A: Unsigned BCD
    A_1 = _DataTypeDescriptor(DataCategory.BCD, 1, _decode_type_a)
    A_2 = _DataTypeDescriptor(DataCategory.BCD, 2, _decode_type_a)
    A_3 = _DataTypeDescriptor(DataCategory.BCD, 3, _decode_type_a)
    A_4 = _DataTypeDescriptor(DataCategory.BCD, 4, _decode_type_a)
    A_6 = _DataTypeDescriptor(DataCategory.BCD, 6, _decode_type_a)

    # Type B: Signed integer
    B_1 = _DataTypeDescriptor(DataCategory.SIGNED, 1, _decode_type_b)
    B_2 = _DataTypeDescriptor(DataCategory.SIGNED, 2, _decode_type_b)
    B_3 = _DataTypeDescriptor(DataCategory.SIGNED, 3, _decode_type_b)
    B_4 = _DataTypeDescriptor(DataCategory.SIGNED, 4, _decode_type_b)
    B_6 = _DataTypeDescriptor(DataCategory.SIGNED, 6, _decode_type_b)
    B_8 = _DataTypeDescriptor(DataCategory.SIGNED, 8, _decode_type_b)

    # Type C: Unsigned integer
    C_1 = _DataTypeDescriptor(DataCategory.UNSIGNED, 1, _decode_type_c)
    C_2 = _DataTypeDescriptor(DataCategory.UNSIGNED, 2, _decode_type_c)
    C_3 = _DataTypeDescriptor(DataCategory.UNSIGNED, 3, _decode_type_c)
    C_4 = _DataTypeDescriptor(DataCategory.UNSIGNED, 4, _decode_type_c)
    C_6 = _DataTypeDescriptor(DataCategory.UNSIGNED, 6, _decode_type_c)
    C_8 = _DataTypeDescriptor(DataCategory.UNSIGNED, 8, _decode_type_c)

    # Types F, G, I, J: Date and time
    F_4 = _DataTypeDescriptor(DataCategory.DATE_TIME, 4, _decode_type_f)
    G_2 = _DataTypeDescriptor(DataCategory.DATE, 2, _decode_type_g)
    I_6 = _DataTypeDescriptor(DataCategory.DATE_TIME, 6, _decode_type_i)
    J_3 = _DataTypeDescriptor(DataCategory.TIME, 3, _decode_type_j)

    # Type H: Real
    H_4 = _DataTypeDescriptor(DataCategory.REAL, 4, _decode_type_h)

    LVAR = _DataTypeDescriptor(DataCategory.VARIABLE, None, None)

    @property
    def category(self) -> DataCategory:
        return self.value.category

    @property
    def length(self) -> int | None:
        """Byte length for this data type (None for variable length)."""
        return self.value.length

    def read(self, stream: ByteStream) -> Any:
        """Read and decode one data field of this type from the stream.

        Raises:
            TruncatedPayloadError: If the data field is cut short
            ValueError: If the data field holds invalid content
        """
        if self is DataType.NONE:
            return None

        if self is DataType.LVAR:
            lvar = stream.read_u8()
            return LVARType.from_code(lvar).read(stream, lvar)

        decoder = self.value.decoder
        if decoder is None or self.length is None:
            raise RuntimeError(f"Data type {self.name} has no fixed length decoder")

        return decoder(stream.read(self.length))


def select_data_type(candidates: tuple[DataType, ...], accepted: DataCategory) -> DataType:
    """Pick the first candidate data type of an accepted category.

    Args:
        candidates: Data types the DIF allows, in order of preference
        accepted: Categories the VIF accepts

    Raises:
        ValueError: If no candidate is accepted
    """
    for data_type in candidates:
        if data_type.category in accepted:
            return data_type

    raise ValueError(
        f"No data type among {', '.join(candidate.name for candidate in candidates)} matches {accepted!r}"
    )
