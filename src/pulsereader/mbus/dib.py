"""DIB (Data Information Block) combining a DIF with its DIFE chain.

The factory __new__ picks the subclass from the DIF type:
    - DataDIB: regular data record header
    - ManufacturerDIB: manufacturer specific data follows until the end
    - IdleFillerDIB: padding byte, carries no record

Reference: EN 13757-3:2018, section 6.3
"""

from __future__ import annotations

from ..stream import ByteStream
from .data import DataType
from .dif import DIF, DIFE, DataDIF, DataDIFE, DIFSpecialFunction, SpecialDIF
from .value import ValueFunction


class DIB:
    """Base class for Data Information Block (DIB).

    Attributes:
        dif: The DIF of the block
        dife: The DIFE chain (may be empty)
    """

    dif: DIF
    dife: tuple[DIFE, ...]

    def __new__(cls, dif: DIF, *dife: DIFE) -> DIB:
        if isinstance(dif, DataDIF):
            return object.__new__(DataDIB)

        if isinstance(dif, SpecialDIF):
            if DIFSpecialFunction.IDLE_FILLER in dif.special_function:
                return object.__new__(IdleFillerDIB)

            if DIFSpecialFunction.MANUFACTURER_DATA_HEADER in dif.special_function:
                return object.__new__(ManufacturerDIB)

        raise ValueError(f"DIB cannot be built from DIF 0x{dif.field_code:02X}")

    def __init__(self, dif: DIF, *dife: DIFE) -> None:
        self.dif = dif
        self.dife = dife

    @staticmethod
    def from_stream(stream: ByteStream) -> DIB:
        """Read a DIF/DIFE chain and wrap it in the matching DIB subclass."""
        return DIB(*DIF.from_stream(stream))


class DataDIB(DIB):
    """DIB of a regular data record.

    Attributes:
        data_types: Candidate data types for the data field
        function: Function field of the record
        storage_number: Storage number (memory address) accumulated over the chain
        tariff: Tariff accumulated over the chain
        subunit: Subunit (sub device) accumulated over the chain
    """

    data_types: tuple[DataType, ...]

    function: ValueFunction

    storage_number: int

    tariff: int

    subunit: int

    def __init__(self, dif: DIF, *dife: DIFE) -> None:
        super().__init__(dif, *dife)

        if not isinstance(dif, DataDIF):
            raise ValueError("DataDIB requires a DataDIF")

        self.data_types = dif.data_types
        self.function = dif.value_function

        self.storage_number = dif.storage_number
        self.tariff = 0
        self.subunit = 0

        for field in dife:
            if isinstance(field, DataDIFE):
                self.storage_number |= field.storage_number
                self.tariff |= field.tariff
                self.subunit |= field.subunit


class ManufacturerDIB(DIB):
    """Start of manufacturer specific data (DIF 0x0F or 0x1F).

    Attributes:
        more_records_follow: True for 0x1F, more records follow in the next telegram
    """

    more_records_follow: bool

    def __init__(self, dif: DIF, *dife: DIFE) -> None:
        super().__init__(dif, *dife)

        if not isinstance(dif, SpecialDIF):
            raise ValueError("ManufacturerDIB requires a SpecialDIF")

        self.more_records_follow = DIFSpecialFunction.MORE_RECORDS_FOLLOW in dif.special_function


class IdleFillerDIB(DIB):
    """Idle filler (DIF 0x2F), skipped by the record decoder."""
