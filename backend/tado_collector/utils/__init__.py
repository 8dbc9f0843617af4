"""
Utility modules for the tado collector.
"""

from tado_collector.utils.validation import (
    parse_bool,
    parse_log_level,
    parse_positive_float,
    parse_positive_int,
    parse_setpoint,
)

__all__ = [
    "parse_bool",
    "parse_log_level",
    "parse_positive_float",
    "parse_positive_int",
    "parse_setpoint",
]
