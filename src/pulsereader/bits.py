"""Sub-byte field extraction.

All fields are addressed most-significant-bit first: offset 0 is bit 7 of the
byte, offset 7 is bit 0. Every field used by the device layouts lives inside a
single byte, so crossing byte boundaries is not supported.

Example:
    The digital channel settings byte 0b0101_0010 splits into the groups
    (4, 1, 1, 1, 1) as (5, 0, 0, 1, 0).
"""

from __future__ import annotations

BYTE_BIT_LENGTH = 8


def _check_field(byte: int, offset: int, width: int) -> None:
    if not 0 <= byte <= 0xFF:
        raise ValueError(f"Value {byte} does not fit in a byte")

    if not 1 <= width <= BYTE_BIT_LENGTH:
        raise ValueError(f"Field width must be between 1 and {BYTE_BIT_LENGTH}, got {width}")

    if offset < 0 or offset + width > BYTE_BIT_LENGTH:
        raise ValueError(f"Field at offset {offset} with width {width} exceeds the byte")


def unpack_unsigned(byte: int, offset: int, width: int) -> int:
    """Extract an unsigned field of `width` bits starting `offset` bits from the MSB.

    Args:
        byte: Byte value (0-255)
        offset: Bit offset counted from the most significant bit
        width: Field width in bits (1-8)

    Returns:
        The unsigned field value

    Raises:
        ValueError: If the field does not fit inside the byte
    """
    _check_field(byte, offset, width)

    shift = BYTE_BIT_LENGTH - offset - width
    return (byte >> shift) & ((1 << width) - 1)


def unpack_signed(byte: int, offset: int, width: int) -> int:
    """Extract a two's complement field of `width` bits starting `offset` bits from the MSB."""
    value = unpack_unsigned(byte, offset, width)

    if value & (1 << (width - 1)):
        return value - (1 << width)

    return value


def unpack_flag(byte: int, offset: int) -> bool:
    """Extract a single bit as a boolean."""
    return bool(unpack_unsigned(byte, offset, 1))


def unpack_fields(byte: int, *widths: int) -> tuple[int, ...]:
    """Split a byte into consecutive unsigned fields, MSB first.

    Raises:
        ValueError: If the widths do not add up to exactly one byte
    """
    if sum(widths) != BYTE_BIT_LENGTH:
        raise ValueError(f"Field widths {widths} do not add up to {BYTE_BIT_LENGTH} bits")

    fields: list[int] = []

    offset = 0
    for width in widths:
        fields.append(unpack_unsigned(byte, offset, width))
        offset += width

    return tuple(fields)
