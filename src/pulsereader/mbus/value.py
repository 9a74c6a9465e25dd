"""Value descriptions, units and scaling for M-Bus data records.

Descriptions double as the field names of the produced readings, so they are
lower-case identifiers. The only exception is "error codes", which keeps the
label downstream consumers already match on.

Reference: EN 13757-3:2018, Tables 10-16
"""

from __future__ import annotations

from enum import Enum, StrEnum, member


class ValueUnit(StrEnum):
    """Units attached to decoded M-Bus values.

    Reference: EN 13757-3:2018, Tables 10-14
    """

    NONE = ""

    # Energy units
    WH = "Wh"  # Watt-hour
    KWH = "kWh"  # Kilowatt-hour (normalized energy readings)
    J = "J"  # Joule

    # Volume and mass units
    M3 = "m³"  # Cubic meter
    KG = "kg"  # Kilogram

    # Time units
    SECONDS = "s"
    MINUTES = "min"
    HOURS = "h"
    DAYS = "days"

    # Power units
    W = "W"  # Watt
    J_H = "J/h"  # Joule per hour

    # Flow units
    M3_H = "m³/h"  # Cubic meter per hour
    M3_MIN = "m³/min"  # Cubic meter per minute
    M3_S = "m³/s"  # Cubic meter per second
    KG_H = "kg/h"  # Kilogram per hour

    # Temperature and pressure units
    CELSIUS = "°C"  # Degrees Celsius
    KELVIN = "K"  # Kelvin (temperature difference)
    BAR = "bar"  # Bar

    # Electrical units
    V = "V"  # Volt
    A = "A"  # Ampere

    PERCENT = "%"  # Percent (relative humidity)


_DURATION_UNITS = (ValueUnit.SECONDS, ValueUnit.MINUTES, ValueUnit.HOURS, ValueUnit.DAYS)


class ValueUnitTransformer(Enum):
    """Units that depend on bits of the VIF code."""

    DURATION_NN = member(lambda _unit, code: _DURATION_UNITS[code & 0x03])

    def __call__(self, unit: str, code: int) -> str:
        return self.value(unit, code)


class ValueDescription(StrEnum):
    """Descriptions of the VIF/VIFE value types this decoder understands.

    Reference: EN 13757-3:2018, Tables 10-14
    """

    # Primary VIF (Table 10)
    ENERGY = "energy"
    VOLUME = "volume"
    MASS = "mass"
    ON_TIME = "on_time"
    OPERATING_TIME = "operating_time"
    POWER = "power"
    FLOW = "flow"
    MASS_FLOW = "mass_flow"
    FLOW_TEMPERATURE = "flow_temperature"
    RETURN_TEMPERATURE = "return_temperature"
    TEMPERATURE_DIFFERENCE = "temperature_difference"
    EXTERNAL_TEMPERATURE = "external_temperature"
    PRESSURE = "pressure"
    DATE = "date"
    DATETIME = "datetime"
    UNITS_FOR_HCA = "units_for_hca"
    AVERAGING_DURATION = "averaging_duration"
    ACTUALITY_DURATION = "actuality_duration"
    FABRICATION_NUMBER = "fabrication_number"
    ENHANCED_IDENTIFICATION = "enhanced_identification"
    BUS_ADDRESS = "bus_address"

    # 0xFB extension (Table 14)
    RELATIVE_HUMIDITY = "relative_humidity"

    # 0xFD extension (Table 12)
    CREDIT = "credit"
    DEBIT = "debit"
    ACCESS_NUMBER = "access_number"
    MEDIUM = "medium"
    MANUFACTURER = "manufacturer"
    PARAMETER_SET_ID = "parameter_set_id"
    MODEL_VERSION = "model_version"
    HARDWARE_VERSION = "hardware_version"
    FIRMWARE_VERSION = "firmware_version"
    SOFTWARE_VERSION = "software_version"
    CUSTOMER_LOCATION = "customer_location"
    CUSTOMER = "customer"
    ERROR_CODES = "error codes"
    ERROR_MASK = "error_mask"
    DIGITAL_OUTPUT = "digital_output"
    DIGITAL_INPUT = "digital_input"
    BAUD_RATE = "baud_rate"
    RESPONSE_DELAY_TIME = "response_delay_time"
    RETRY = "retry"
    DIMENSIONLESS = "dimensionless"
    VOLTAGE = "voltage"
    CURRENT = "current"
    RESET_COUNTER = "reset_counter"
    CUMULATION_COUNTER = "cumulation_counter"
    REMAINING_BATTERY_LIFETIME = "remaining_battery_lifetime"

    # Special VIFs
    PLAIN_TEXT = "plain_text"
    MANUFACTURER_SPECIFIC = "manufacturer_specific"
    MANUFACTURER_DATA = "manufacturer_data"


def _scale(value: float, exponent: int) -> float:
    # Divide for negative exponents so 6235 * 10^-2 stays 62.35
    if exponent >= 0:
        return value * 10**exponent

    return value / 10**-exponent


class ValueTransformer(Enum):
    """Value transformation functions for M-Bus VIF/VIFE codes.

    Each member is a function that takes (value, code) and returns the transformed value.

    Naming convention:
        MULT_10_POW_{bits}_{offset} = Multiplicative: value * 10^((code & mask) + offset)
        ADD_10_POW_{bits}_{offset} = Additive: value + 10^((code & mask) + offset)

    Usage:
        transform = ValueTransformer.MULT_10_POW_NNN_MINUS_3
        result = transform(1042, 0x03)  # 1.042
    """

    # === POWER OF 10: nnn bits (3 bits, mask 0x07) ===
    MULT_10_POW_NNN_MINUS_3 = member(lambda value, code: _scale(value, (code & 0x07) - 3))
    MULT_10_POW_NNN = member(lambda value, code: _scale(value, code & 0x07))
    MULT_10_POW_NNN_MINUS_6 = member(lambda value, code: _scale(value, (code & 0x07) - 6))
    MULT_10_POW_NNN_MINUS_7 = member(lambda value, code: _scale(value, (code & 0x07) - 7))
    MULT_10_POW_NNN_MINUS_9 = member(lambda value, code: _scale(value, (code & 0x07) - 9))

    # === POWER OF 10: nn bits (2 bits, mask 0x03) ===
    MULT_10_POW_NN_MINUS_3 = member(lambda value, code: _scale(value, (code & 0x03) - 3))

    # === POWER OF 10: n bit (1 bit, mask 0x01) ===
    MULT_10_POW_N_MINUS_1 = member(lambda value, code: _scale(value, (code & 0x01) - 1))
    MULT_10_POW_N_PLUS_2 = member(lambda value, code: _scale(value, (code & 0x01) + 2))
    MULT_10_POW_N_PLUS_5 = member(lambda value, code: _scale(value, (code & 0x01) + 5))
    MULT_10_POW_N_PLUS_8 = member(lambda value, code: _scale(value, (code & 0x01) + 8))

    # === POWER OF 10: nnnn bits (4 bits, mask 0x0F) ===
    MULT_10_POW_NNNN_MINUS_9 = member(lambda value, code: _scale(value, (code & 0x0F) - 9))
    MULT_10_POW_NNNN_MINUS_12 = member(lambda value, code: _scale(value, (code & 0x0F) - 12))

    # === FIXED VALUES ===
    MULT_1000 = member(lambda value, _code: value * 1000)

    # === ADDITIVE ===
    ADD_10_POW_NN_MINUS_3 = member(lambda value, code: value + _scale(1, (code & 0x03) - 3))

    def __call__(self, value: float, code: int) -> float:
        """Allow calling the enum member directly as a function.

        Integral scaling of an integer keeps the integer type.
        """
        return self.value(value, code)


class ValueFunction(StrEnum):
    """Function field of a data record (EN 13757-3:2018, Table 7)."""

    CURRENT = "current_value"
    MAXIMUM = "max_value"
    MINIMUM = "min_value"
    ERROR = "value_during_error_state"
