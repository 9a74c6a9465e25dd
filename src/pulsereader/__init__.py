"""
pyPulseReader: Python decoder for NAS pulse, analog and M-Bus reader payloads.

Turns LoRaWAN uplink payloads of the pulse/analog reader family into flat
readings, annotates gas counters with their OBIS code and fills the gap to
the previous reading by interpolation.
"""

from __future__ import annotations

from .config import DEFAULT_CONFIG, DecoderConfig
from .decoder import PayloadDecoder, decode, decode_hex
from .exceptions import (
    LastReadingLookupError,
    PayloadError,
    PulseReaderError,
    TruncatedPayloadError,
    UnknownFrameError,
)
from .frame import Frame, FramePort, FrameShape, Reading
from .lookup import LastReading, LastReadingLookup, MappingLookup

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Decoding
    "PayloadDecoder",
    "decode",
    "decode_hex",
    # Configuration
    "DEFAULT_CONFIG",
    "DecoderConfig",
    # Frames and readings
    "Frame",
    "FramePort",
    "FrameShape",
    "Reading",
    # Last reading lookup
    "LastReading",
    "LastReadingLookup",
    "MappingLookup",
    # Exceptions
    "LastReadingLookupError",
    "PayloadError",
    "PulseReaderError",
    "TruncatedPayloadError",
    "UnknownFrameError",
]
