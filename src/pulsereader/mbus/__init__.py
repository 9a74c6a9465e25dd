"""Decoder for wired M-Bus data records forwarded by the device.

Reference: EN 13757-3:2018
"""

from .dib import DIB, DataDIB, IdleFillerDIB, ManufacturerDIB
from .dif import DIF, DIFE, DataDIF, DataDIFE, FinalDIFE, SpecialDIF
from .record import DataRecord, decode_records
from .value import ValueDescription, ValueFunction, ValueUnit
from .vif import VIB, VIF, VIFE

__all__ = [
    # Records
    "DataRecord",
    "decode_records",
    # Values
    "ValueDescription",
    "ValueFunction",
    "ValueUnit",
    # DIF/DIB classes
    "DIB",
    "DIF",
    "DIFE",
    "DataDIB",
    "DataDIF",
    "DataDIFE",
    "FinalDIFE",
    "IdleFillerDIB",
    "ManufacturerDIB",
    "SpecialDIF",
    # VIF/VIB classes
    "VIB",
    "VIF",
    "VIFE",
]
