"""Forward-only byte cursor shared by all payload decoders."""

from __future__ import annotations

import struct

from .exceptions import TruncatedPayloadError


class ByteStream:
    """Cursor over an immutable payload.

    Every read either returns exactly the requested bytes or raises
    TruncatedPayloadError without moving the cursor, so a decoder can never
    read past the end of the bytes it was given.
    """

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._position = 0

    def __len__(self) -> int:
        return self.remaining

    def __repr__(self) -> str:
        return f"ByteStream(position={self._position}, remaining={self.remaining})"

    @property
    def position(self) -> int:
        return self._position

    @property
    def remaining(self) -> int:
        return len(self._data) - self._position

    @property
    def exhausted(self) -> bool:
        return self._position >= len(self._data)

    def has(self, count: int) -> bool:
        """Check that at least `count` bytes are left."""
        return self.remaining >= count

    def read(self, count: int) -> bytes:
        """Read exactly `count` bytes.

        Raises:
            TruncatedPayloadError: If fewer than `count` bytes are left
        """
        if count < 0:
            raise ValueError(f"Cannot read a negative number of bytes: {count}")

        if not self.has(count):
            raise TruncatedPayloadError(
                f"Expected {count} bytes at position {self._position}, only {self.remaining} left"
            )

        chunk = self._data[self._position : self._position + count]
        self._position += count
        return chunk

    def read_rest(self) -> bytes:
        """Read every remaining byte (possibly none)."""
        return self.read(self.remaining)

    def read_u8(self) -> int:
        return self.read(1)[0]

    def read_s8(self) -> int:
        return int.from_bytes(self.read(1), byteorder="big", signed=True)

    def read_u32_le(self) -> int:
        return int.from_bytes(self.read(4), byteorder="little")

    def read_f32_le(self) -> float:
        value: float = struct.unpack("<f", self.read(4))[0]
        return value
