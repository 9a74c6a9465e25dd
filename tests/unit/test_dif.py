"""Unit tests for DIF/DIFE classes and helper functions."""

import pytest

from pulsereader.exceptions import TruncatedPayloadError
from pulsereader.mbus.data import DataType
from pulsereader.mbus.dif import (
    DIF,
    DIFE,
    DataDIF,
    DataDIFE,
    DIFSpecialFunction,
    FinalDIFE,
    SpecialDIF,
    _find_field_descriptor,
)
from pulsereader.mbus.value import ValueFunction
from pulsereader.stream import ByteStream

# =============================================================================
# Test Constants - Duplicated from src for test isolation
# =============================================================================
# If these values change in production code, tests will fail and alert us

# DIF codes - Data fields
TEST_DIF_32BIT_INST = 0x04  # 0b00000100: 32-bit integer, current value, no extension
TEST_DIF_32BIT_INST_EXT = 0x84  # 0b10000100: 32-bit integer, current value, with extension bit
TEST_DIF_32BIT_INST_STORAGE1 = 0x44  # 0b01000100: 32-bit integer, storage bit 6 set
TEST_DIF_32BIT_MAX = 0x14  # 0b00010100: 32-bit integer, maximum function
TEST_DIF_32BIT_MIN = 0x24  # 0b00100100: 32-bit integer, minimum function
TEST_DIF_32BIT_ERR = 0x34  # 0b00110100: 32-bit integer, error function
TEST_DIF_16BIT_INST = 0x02  # 0b00000010: 16-bit integer, current value
TEST_DIF_BCD8_INST = 0x0C  # 0b00001100: 8 digit BCD, current value
TEST_DIF_VARIABLE = 0x0D  # 0b00001101: Variable length data
TEST_DIF_READOUT_SEL = 0x08  # 0b00001000: Readout selection (master to slave only)

# DIF codes - Special functions
TEST_SPECIAL_DIF_MANUFACTURER = 0x0F  # 0b00001111: Manufacturer specific data
TEST_SPECIAL_DIF_MORE_RECORDS = 0x1F  # 0b00011111: Manufacturer data + more records follow
TEST_SPECIAL_DIF_IDLE_FILLER = 0x2F  # 0b00101111: Idle filler (padding)
TEST_SPECIAL_DIF_GLOBAL_READOUT = 0x7F  # 0b01111111: Global readout request (master to slave only)
TEST_SPECIAL_DIF_RESERVED = 0x3F  # 0b00111111: Reserved special function

# DIFE codes
TEST_DIFE_STORAGE_1 = 0x01  # 0b00000001: Storage bits 0-3 = 0001, no extension
TEST_DIFE_STORAGE_1_EXT = 0x81  # 0b10000001: Storage bits 0-3 = 0001, with extension
TEST_DIFE_STORAGE_FULL = 0x0F  # 0b00001111: Storage bits 0-3 = 1111
TEST_DIFE_TARIFF_FULL = 0x30  # 0b00110000: Tariff bits 4-5 = 11 (value 3)
TEST_DIFE_SUBUNIT_FULL = 0x40  # 0b01000000: Subunit bit 6 = 1
TEST_DIFE_TARIFF_SUBUNIT_FULL_EXT = 0xF0  # 0b11110000: Tariff=3, Subunit=1, extension
TEST_FINAL_DIFE = 0x00  # 0b00000000: Final DIFE marking register number

# Chain length limits
TEST_DIFE_MAXIMUM_CHAIN_LENGTH = 10  # Maximum number of chained DIFE bytes


def _chain(dif_code: int, *dife_codes: int) -> DIF:
    """Build a DIF with its DIFE chain and return the DIF."""
    dif = DIF(dif_code)

    current: DIF = dif
    for code in dife_codes:
        current = current.create_next_dife(code)

    return dif


# =============================================================================
# Helper Function Tests
# =============================================================================


class TestFindFieldDescriptor:
    """Tests for _find_field_descriptor helper function."""

    def test_find_valid_data_field(self) -> None:
        """Test finding a valid data field descriptor."""
        descriptor = _find_field_descriptor(TEST_DIF_32BIT_INST)
        assert descriptor.code == TEST_DIF_32BIT_INST

    def test_extension_and_function_bits_are_ignored(self) -> None:
        """Test that the data field lookup only looks at the low nibble."""
        assert _find_field_descriptor(TEST_DIF_32BIT_INST_EXT) is _find_field_descriptor(TEST_DIF_32BIT_INST)
        assert _find_field_descriptor(TEST_DIF_32BIT_MAX) is _find_field_descriptor(TEST_DIF_32BIT_INST)

    def test_find_special_field(self) -> None:
        """Test finding a special function field descriptor."""
        descriptor = _find_field_descriptor(TEST_SPECIAL_DIF_MANUFACTURER)
        assert descriptor.code == TEST_SPECIAL_DIF_MANUFACTURER

    @pytest.mark.parametrize(
        "dif_code",
        [TEST_DIF_READOUT_SEL, TEST_SPECIAL_DIF_GLOBAL_READOUT, TEST_SPECIAL_DIF_RESERVED],
        ids=["readout_selection", "global_readout", "reserved"],
    )
    def test_master_to_slave_and_reserved_codes_raise(self, dif_code: int) -> None:
        """Test that codes never sent by a meter raise ValueError."""
        with pytest.raises(ValueError, match="not found in DIF table"):
            _find_field_descriptor(dif_code)

    def test_lru_cache_works(self) -> None:
        """Test that LRU cache returns same object on repeated calls."""
        desc1 = _find_field_descriptor(TEST_DIF_32BIT_INST)
        desc2 = _find_field_descriptor(TEST_DIF_32BIT_INST)
        assert desc1 is desc2


# =============================================================================
# DIF Class Tests
# =============================================================================


class TestDIF:
    """Tests for DIF base class."""

    @pytest.mark.parametrize(
        ("dif_code", "expected_type"),
        [
            (TEST_DIF_32BIT_INST, DataDIF),
            (TEST_DIF_32BIT_INST_EXT, DataDIF),
            (TEST_SPECIAL_DIF_MANUFACTURER, SpecialDIF),
            (TEST_SPECIAL_DIF_IDLE_FILLER, SpecialDIF),
        ],
    )
    def test_factory_creates_correct_type(self, dif_code: int, expected_type: type) -> None:
        """Test that DIF factory creates correct subclass based on DIF code."""
        dif = DIF(dif_code)
        assert isinstance(dif, expected_type)

    def test_chain_position_is_zero(self) -> None:
        """Test that DIF has chain_position=0."""
        dif = DIF(TEST_DIF_32BIT_INST)
        assert dif.chain_position == 0

    def test_create_next_dife(self) -> None:
        """Test creating next DIFE in chain."""
        dif = DIF(TEST_DIF_32BIT_INST_EXT)
        dife = dif.create_next_dife(TEST_DIFE_STORAGE_1)
        assert isinstance(dife, DataDIFE)
        assert dife.chain_position == 1
        assert dife.prev_field is dif
        assert dif.next_field is dife

    def test_create_next_dife_past_last_field_raises(self) -> None:
        """Test that a DIF without extension bit cannot be extended."""
        dif = DIF(TEST_DIF_32BIT_INST)
        with pytest.raises(ValueError, match="past last field"):
            dif.create_next_dife(TEST_DIFE_STORAGE_1)


# =============================================================================
# DataDIF Class Tests
# =============================================================================


class TestDataDIF:
    """Tests for DataDIF class."""

    @pytest.mark.parametrize(
        ("dif_code", "expected_data_types"),
        [
            (TEST_DIF_16BIT_INST, (DataType.B_2, DataType.C_2, DataType.G_2)),
            (TEST_DIF_32BIT_INST, (DataType.B_4, DataType.C_4, DataType.F_4)),
            (TEST_DIF_BCD8_INST, (DataType.A_4,)),
            (TEST_DIF_VARIABLE, (DataType.LVAR,)),
        ],
        ids=["16bit", "32bit", "bcd8", "variable"],
    )
    def test_data_types_extracted(self, dif_code: int, expected_data_types: tuple[DataType, ...]) -> None:
        """Test that candidate data types are taken from the data field."""
        dif = DIF(dif_code)
        assert isinstance(dif, DataDIF)
        assert dif.data_types == expected_data_types

    @pytest.mark.parametrize(
        ("dif_code", "expected_function"),
        [
            (TEST_DIF_32BIT_INST, ValueFunction.CURRENT),
            (TEST_DIF_32BIT_MAX, ValueFunction.MAXIMUM),
            (TEST_DIF_32BIT_MIN, ValueFunction.MINIMUM),
            (TEST_DIF_32BIT_ERR, ValueFunction.ERROR),
        ],
    )
    def test_value_function_from_dif(self, dif_code: int, expected_function: ValueFunction) -> None:
        """Test that value_function is correctly extracted from DIF."""
        dif = DIF(dif_code)
        assert isinstance(dif, DataDIF)
        assert dif.value_function == expected_function

    @pytest.mark.parametrize(
        ("dif_code", "expected_storage"),
        [
            (TEST_DIF_32BIT_INST, 0),
            (TEST_DIF_32BIT_INST_STORAGE1, 1),
        ],
    )
    def test_storage_number_from_dif_only(self, dif_code: int, expected_storage: int) -> None:
        """Test storage number extraction from DIF alone (no DIFEs)."""
        dif = DIF(dif_code)
        assert isinstance(dif, DataDIF)
        assert dif.storage_number == expected_storage

    @pytest.mark.parametrize(
        ("dif_code", "expected_last_field"),
        [
            (TEST_DIF_32BIT_INST, True),
            (TEST_DIF_32BIT_INST_EXT, False),
        ],
    )
    def test_last_field_detection(self, dif_code: int, expected_last_field: bool) -> None:
        """Test last_field detection based on extension bit."""
        dif = DIF(dif_code)
        assert dif.last_field is expected_last_field


# =============================================================================
# SpecialDIF Class Tests
# =============================================================================


class TestSpecialDIF:
    """Tests for SpecialDIF class."""

    @pytest.mark.parametrize(
        ("dif_code", "expected_function"),
        [
            (TEST_SPECIAL_DIF_MANUFACTURER, DIFSpecialFunction.MANUFACTURER_DATA_HEADER),
            (
                TEST_SPECIAL_DIF_MORE_RECORDS,
                DIFSpecialFunction.MANUFACTURER_DATA_HEADER | DIFSpecialFunction.MORE_RECORDS_FOLLOW,
            ),
            (TEST_SPECIAL_DIF_IDLE_FILLER, DIFSpecialFunction.IDLE_FILLER),
        ],
    )
    def test_special_function_extraction(self, dif_code: int, expected_function: DIFSpecialFunction) -> None:
        """Test that special_function is correctly extracted from SpecialDIF codes."""
        dif = DIF(dif_code)
        assert isinstance(dif, SpecialDIF)
        assert dif.special_function == expected_function

    def test_special_dif_is_last_field(self) -> None:
        """Test that special DIFs never announce a DIFE."""
        assert DIF(TEST_SPECIAL_DIF_MANUFACTURER).last_field is True


# =============================================================================
# DIFE Class Tests
# =============================================================================


class TestDIFE:
    """Tests for DIFE factory and chain handling."""

    @pytest.mark.parametrize(
        ("dife_code", "expected_type"),
        [
            (TEST_DIFE_STORAGE_1, DataDIFE),
            (TEST_DIFE_TARIFF_FULL, DataDIFE),
            (TEST_FINAL_DIFE, FinalDIFE),
        ],
    )
    def test_factory_creates_correct_type(self, dife_code: int, expected_type: type) -> None:
        """Test that DIFE factory creates FinalDIFE only for 0x00."""
        dife = DIFE(dife_code, DIF(TEST_DIF_32BIT_INST_EXT))
        assert isinstance(dife, expected_type)

    def test_previous_field_cannot_be_extended_twice(self) -> None:
        """Test that a field already holding a next field rejects another one."""
        dif = DIF(TEST_DIF_32BIT_INST_EXT)
        dif.create_next_dife(TEST_DIFE_STORAGE_1)

        with pytest.raises(ValueError, match="already has a next field"):
            dif.create_next_dife(TEST_DIFE_STORAGE_1)

    def test_maximum_chain_length_accepted(self) -> None:
        """Test that ten DIFEs are accepted."""
        codes = [TEST_DIFE_STORAGE_1_EXT] * (TEST_DIFE_MAXIMUM_CHAIN_LENGTH - 1) + [TEST_DIFE_STORAGE_1]
        dif, *dife = DIF.from_stream(ByteStream(bytes([TEST_DIF_32BIT_INST_EXT, *codes])))

        assert len(dife) == TEST_DIFE_MAXIMUM_CHAIN_LENGTH
        assert dife[-1].chain_position == TEST_DIFE_MAXIMUM_CHAIN_LENGTH

    def test_exceeding_chain_length_raises(self) -> None:
        """Test that an eleventh DIFE raises ValueError."""
        codes = [TEST_DIFE_STORAGE_1_EXT] * TEST_DIFE_MAXIMUM_CHAIN_LENGTH + [TEST_DIFE_STORAGE_1]

        with pytest.raises(ValueError, match="Exceeded maximum DIFE chain length"):
            DIF.from_stream(ByteStream(bytes([TEST_DIF_32BIT_INST_EXT, *codes])))


class TestDataDIFE:
    """Tests for storage number, tariff and subunit bits of DataDIFE."""

    def test_first_dife_storage_bits_sit_above_dif_bit(self) -> None:
        """Test that the first DIFE storage bits are shifted past the DIF storage bit."""
        dif = _chain(TEST_DIF_32BIT_INST_EXT, TEST_DIFE_STORAGE_FULL)
        dife = dif.next_field
        assert isinstance(dife, DataDIFE)
        assert dife.storage_number == 0b11110

    def test_second_dife_storage_bits(self) -> None:
        """Test that the second DIFE storage bits are shifted a further four bits."""
        dif = _chain(TEST_DIF_32BIT_INST_EXT, TEST_DIFE_STORAGE_1_EXT, TEST_DIFE_STORAGE_FULL)
        second = dif.next_field.next_field  # type: ignore[union-attr]
        assert isinstance(second, DataDIFE)
        assert second.storage_number == 0b1111 << 5

    @pytest.mark.parametrize(
        ("dife_codes", "expected_tariff", "expected_subunit"),
        [
            ((TEST_DIFE_TARIFF_FULL,), 3, 0),
            ((TEST_DIFE_SUBUNIT_FULL,), 0, 1),
            ((TEST_DIFE_TARIFF_SUBUNIT_FULL_EXT, TEST_DIFE_TARIFF_FULL), 3 << 2, 0),
        ],
        ids=["tariff", "subunit", "second_dife_tariff"],
    )
    def test_tariff_and_subunit_bits(
        self, dife_codes: tuple[int, ...], expected_tariff: int, expected_subunit: int
    ) -> None:
        """Test tariff and subunit bits of the last DIFE in the chain."""
        dif = _chain(TEST_DIF_32BIT_INST_EXT, *dife_codes)

        last = dif.next_field
        while last is not None and last.next_field is not None:
            last = last.next_field

        assert isinstance(last, DataDIFE)
        assert last.tariff == expected_tariff
        assert last.subunit == expected_subunit


# =============================================================================
# Stream Parsing Tests
# =============================================================================


class TestFromStream:
    """Tests for DIF.from_stream."""

    def test_single_dif(self) -> None:
        """Test reading a DIF without extension."""
        stream = ByteStream(bytes([TEST_DIF_32BIT_INST, 0xAA]))
        chain = DIF.from_stream(stream)

        assert len(chain) == 1
        assert isinstance(chain[0], DataDIF)
        assert stream.position == 1

    def test_chain_with_final_dife(self) -> None:
        """Test reading a chain terminated by a final DIFE."""
        chain = DIF.from_stream(ByteStream(bytes([TEST_DIF_32BIT_INST_EXT, TEST_FINAL_DIFE])))

        assert len(chain) == 2
        assert isinstance(chain[1], FinalDIFE)

    def test_truncated_chain_raises(self) -> None:
        """Test that a chain announcing a missing DIFE raises TruncatedPayloadError."""
        with pytest.raises(TruncatedPayloadError):
            DIF.from_stream(ByteStream(bytes([TEST_DIF_32BIT_INST_EXT])))
