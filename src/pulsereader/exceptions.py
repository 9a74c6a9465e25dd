"""pyPulseReader exception classes."""

from __future__ import annotations


class PulseReaderError(Exception):
    """Base exception for all pyPulseReader errors."""


class PayloadError(PulseReaderError):
    """Payload bytes do not fit the expected frame or channel layout."""


class TruncatedPayloadError(PayloadError):
    """Read past the end of the available payload bytes."""


class UnknownFrameError(PayloadError):
    """No decoder is registered for the port/marker combination."""


class LastReadingLookupError(PulseReaderError):
    """The last-reading lookup could not reach its backing store."""
