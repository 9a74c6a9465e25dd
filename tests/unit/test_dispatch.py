"""Unit tests for frame dispatching and the per-shape frame decoders."""

from __future__ import annotations

import logging

import pytest

from pulsereader.dispatch import (
    BatteryVoltage,
    MbusFixedHeader,
    ResetReason,
    ShutdownReason,
    dispatch,
    frame_shape,
)
from pulsereader.exceptions import UnknownFrameError
from pulsereader.frame import Frame, FrameShape

# =============================================================================
# Test Constants - Duplicated from src for test isolation
# =============================================================================
# If these values change in production code, tests will fail and alert us

TEST_PORT_STATUS = 24
TEST_PORT_STATUS_ONLY = 25
TEST_PORT_CONFIG_REQUEST = 49
TEST_PORT_MBUS_CONNECT = 53
TEST_PORT_BOOT = 99

# Boot frames: marker 00, serial, firmware, reset reason, optional battery byte
TEST_BOOT_WITH_BATTERY = "00D701164C0007081002"
TEST_BOOT_TWO_TRAILING_BYTES = "00CA021C4E000722100200"
TEST_BOOT_NO_BATTERY = "00D701164C07081C10"

# Shutdown frame: marker 01, reason user magnet, status-only block
TEST_SHUTDOWN = "0131033A0B7C10000000001000000000"

# M-Bus connect frames: marker 01, packet info, optional fixed header
TEST_MBUS_CONNECT_WITH_HEADER = "01C888020969A732070415000000"
TEST_MBUS_CONNECT_NO_HEADER = "0181"


def _frame(payload: str, port: int) -> Frame:
    return Frame(payload=bytes.fromhex(payload), port=port)


# =============================================================================
# Shape Lookup Tests
# =============================================================================


class TestFrameShape:
    """Tests for frame_shape."""

    @pytest.mark.parametrize(
        ("payload", "port", "expected_shape", "expected_by_marker"),
        [
            ("0300", TEST_PORT_STATUS, FrameShape.STATUS, False),
            ("0100", TEST_PORT_STATUS, FrameShape.STATUS, False),
            ("03", TEST_PORT_STATUS_ONLY, FrameShape.STATUS_ONLY, False),
            ("00", TEST_PORT_BOOT, FrameShape.BOOT, True),
            ("01", TEST_PORT_BOOT, FrameShape.SHUTDOWN, True),
            ("10", TEST_PORT_BOOT, FrameShape.ERROR, True),
            ("", TEST_PORT_CONFIG_REQUEST, FrameShape.CONFIG_REQUEST, False),
            ("01", TEST_PORT_CONFIG_REQUEST, FrameShape.CONFIG_REQUEST, False),
            ("01", TEST_PORT_MBUS_CONNECT, FrameShape.MBUS_CONNECT, True),
        ],
        ids=[
            "status",
            "status_marker_not_used",
            "status_only",
            "boot",
            "shutdown",
            "error",
            "config_request_empty",
            "config_request",
            "mbus_connect",
        ],
    )
    def test_known_shapes(self, payload: str, port: int, expected_shape: FrameShape, expected_by_marker: bool) -> None:
        """Test the shape and marker usage of every known frame."""
        assert frame_shape(_frame(payload, port)) == (expected_shape, expected_by_marker)

    @pytest.mark.parametrize(
        ("payload", "port"),
        [
            ("00", 1),
            ("05", TEST_PORT_BOOT),
            ("", TEST_PORT_BOOT),
            ("02", TEST_PORT_MBUS_CONNECT),
            ("", TEST_PORT_MBUS_CONNECT),
        ],
        ids=["unknown_port", "unknown_boot_marker", "empty_boot", "unknown_mbus_marker", "empty_mbus"],
    )
    def test_unknown_shapes_raise(self, payload: str, port: int) -> None:
        """Test that frames matching no shape raise UnknownFrameError."""
        with pytest.raises(UnknownFrameError, match=f"No decoder for port {port}"):
            frame_shape(_frame(payload, port))


# =============================================================================
# Dispatch Tests
# =============================================================================


class TestDispatch:
    """Tests for dispatch error handling."""

    def test_unknown_frame_gives_no_readings(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that unknown frames are logged and produce nothing."""
        with caplog.at_level(logging.WARNING, logger="pulsereader.dispatch"):
            assert dispatch(_frame("0102", 1)) == []

        assert "Cannot decode payload 0102 on port 1" in caplog.text

    @pytest.mark.parametrize(
        ("payload", "port"),
        [
            ("03E617", TEST_PORT_STATUS),
            ("", TEST_PORT_STATUS_ONLY),
            ("00D70116", TEST_PORT_BOOT),
            ("10", TEST_PORT_BOOT),
            ("100102", TEST_PORT_BOOT),
            ("01", TEST_PORT_MBUS_CONNECT),
        ],
        ids=["short_status", "empty_status_only", "short_boot", "error_without_code", "error_trailing", "mbus_no_info"],
    )
    def test_malformed_frame_gives_no_readings(self, payload: str, port: int) -> None:
        """Test that frames too short for their shape produce nothing."""
        assert dispatch(_frame(payload, port)) == []


# =============================================================================
# Status Frame Tests
# =============================================================================


class TestStatusFrame:
    """Tests for status frames on port 24."""

    @pytest.mark.parametrize(
        ("rssi_byte", "expected_rssi"),
        [(0x2C, -44), (0x4B, -75), (0x00, 0), (0xF0, 16)],
    )
    def test_rssi_is_negated(self, rssi_byte: int, expected_rssi: int) -> None:
        """Test that the signal strength magnitude is reported as negative dBm."""
        payload = bytes([0x00, 230, 23, rssi_byte]).hex()

        (reading,) = dispatch(_frame(payload, TEST_PORT_STATUS))

        assert reading["rssi"] == expected_rssi

    def test_telemetry(self) -> None:
        """Test battery and signed temperature."""
        (reading,) = dispatch(_frame("00E6F62C", TEST_PORT_STATUS))

        assert reading == {
            "battery": 230,
            "temperature": -10,
            "rssi": -44,
            "user_triggered": False,
            "mbus": False,
            "ssi": False,
        }


# =============================================================================
# Boot Frame Tests
# =============================================================================


class TestBootFrame:
    """Tests for boot frames on port 99."""

    def test_boot_with_battery_voltage(self) -> None:
        """Test a boot frame ending in exactly one battery byte."""
        assert dispatch(_frame(TEST_BOOT_WITH_BATTERY, TEST_PORT_BOOT)) == [
            {
                "type": "boot",
                "serial": "D701164C",
                "firmware": "0.7.8",
                "reset_reason": "normal_magnet",
                "battery_voltage": "3.6V",
            }
        ]

    def test_boot_with_two_trailing_bytes(self) -> None:
        """Test that two bytes after the reset reason carry no battery voltage."""
        (reading,) = dispatch(_frame(TEST_BOOT_TWO_TRAILING_BYTES, TEST_PORT_BOOT))

        assert reading["serial"] == "CA021C4E"
        assert reading["firmware"] == "0.7.34"
        assert reading["reset_reason"] is ResetReason.NORMAL_MAGNET
        assert "battery_voltage" not in reading

    def test_boot_without_battery(self) -> None:
        """Test a boot frame ending with its reset reason."""
        assert dispatch(_frame(TEST_BOOT_NO_BATTERY, TEST_PORT_BOOT)) == [
            {
                "type": "boot",
                "serial": "D701164C",
                "firmware": "7.8.28",
                "reset_reason": "normal_magnet",
            }
        ]

    def test_boot_without_reset_reason(self) -> None:
        """Test a boot frame ending with its firmware version."""
        (reading,) = dispatch(_frame("00D701164C000708", TEST_PORT_BOOT))

        assert "reset_reason" not in reading
        assert "battery_voltage" not in reading

    @pytest.mark.parametrize(
        ("reset_byte", "expected_reason"),
        [
            (0x02, ResetReason.WATCHDOG_RESET),
            (0x04, ResetReason.SOFT_RESET),
            (0x10, ResetReason.NORMAL_MAGNET),
            (0x07, ResetReason.UNKNOWN),
        ],
    )
    def test_reset_reasons(self, reset_byte: int, expected_reason: ResetReason) -> None:
        """Test every reset reason code, unknown codes included."""
        (reading,) = dispatch(_frame(f"00D701164C000708{reset_byte:02X}", TEST_PORT_BOOT))

        assert reading["reset_reason"] is expected_reason

    @pytest.mark.parametrize(
        ("battery_byte", "expected_voltage"),
        [
            (0x01, BatteryVoltage.V3_0),
            (0x02, BatteryVoltage.V3_6),
            (0x09, BatteryVoltage.UNKNOWN),
        ],
    )
    def test_battery_voltages(self, battery_byte: int, expected_voltage: BatteryVoltage) -> None:
        """Test every battery voltage code, unknown codes included."""
        (reading,) = dispatch(_frame(f"00D701164C00070810{battery_byte:02X}", TEST_PORT_BOOT))

        assert reading["battery_voltage"] is expected_voltage


# =============================================================================
# Shutdown and Error Frame Tests
# =============================================================================


class TestShutdownFrame:
    """Tests for shutdown frames on port 99."""

    def test_shutdown_with_status_block(self) -> None:
        """Test that the status block follows as its own reading."""
        shutdown, status = dispatch(_frame(TEST_SHUTDOWN, TEST_PORT_BOOT))

        assert shutdown == {"type": "shutdown", "reason": "user_magnet"}
        assert status["digital1_reporting"] == 1080331
        assert status["digital1_reporting_medium_type"] == "electricity_in_wh"
        assert status["digital1_reporting_trigger_mode"] == "enabled"
        assert status["digital2_reporting"] == 1048576
        assert status["digital2_reporting_medium_type"] == "not_available"

    @pytest.mark.parametrize(
        ("payload", "expected_readings"),
        [
            ("01", [{"type": "shutdown"}]),
            ("0132", [{"type": "shutdown", "reason": ShutdownReason.USER_DFU}]),
            ("0102", [{"type": "shutdown", "reason": ShutdownReason.HARDWARE_ERROR}]),
            ("01FF", [{"type": "shutdown", "reason": ShutdownReason.UNKNOWN}]),
        ],
        ids=["bare", "user_dfu", "hardware_error", "unknown_reason"],
    )
    def test_shutdown_without_status_block(self, payload: str, expected_readings: list[dict[str, str]]) -> None:
        """Test shutdown frames ending before the status block."""
        assert dispatch(_frame(payload, TEST_PORT_BOOT)) == expected_readings


class TestErrorFrame:
    """Tests for error frames on port 99."""

    def test_error_code(self) -> None:
        """Test a single error code byte."""
        assert dispatch(_frame("1001", TEST_PORT_BOOT)) == [{"type": "error", "error_code": 1}]


class TestConfigRequestFrame:
    """Tests for configuration requests on port 49."""

    @pytest.mark.parametrize("payload", ["", "0102"], ids=["empty", "with_bytes"])
    def test_config_request(self, payload: str) -> None:
        """Test that any payload on port 49 is a configuration request."""
        assert dispatch(_frame(payload, TEST_PORT_CONFIG_REQUEST)) == [{"type": "config_request"}]


# =============================================================================
# M-Bus Connect Frame Tests
# =============================================================================


class TestMbusConnectFrame:
    """Tests for M-Bus connect frames on port 53."""

    def test_with_fixed_header(self) -> None:
        """Test packet info and fixed header fields."""
        assert dispatch(_frame(TEST_MBUS_CONNECT_WITH_HEADER, TEST_PORT_MBUS_CONNECT)) == [
            {
                "type": "mbus_connect",
                "packet_number": 0,
                "packets_to_follow": True,
                "mbus_fixed_header": "sent",
                "only_drh": True,
                "bcd_ident_number": "69090288",
                "manufacturer_id": "A732",
                "sw_version": "07",
                "medium": "04",
                "access_number": "15",
                "status": "00",
                "signature": "0000",
            }
        ]

    def test_without_fixed_header(self) -> None:
        """Test packet info only."""
        assert dispatch(_frame(TEST_MBUS_CONNECT_NO_HEADER, TEST_PORT_MBUS_CONNECT)) == [
            {
                "type": "mbus_connect",
                "packet_number": 1,
                "packets_to_follow": False,
                "mbus_fixed_header": MbusFixedHeader.NOT_SENT,
                "only_drh": True,
            }
        ]

    def test_truncated_fixed_header(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that a cut off fixed header keeps the packet info."""
        with caplog.at_level(logging.WARNING, logger="pulsereader.dispatch"):
            (reading,) = dispatch(_frame(TEST_MBUS_CONNECT_WITH_HEADER[:12], TEST_PORT_MBUS_CONNECT))

        assert reading["mbus_fixed_header"] is MbusFixedHeader.SENT
        assert "bcd_ident_number" not in reading
        assert "fixed header but it is truncated" in caplog.text
