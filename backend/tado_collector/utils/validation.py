"""
Input Parsing Utilities
=======================

Small parsers for environment values and vendor text fields.
"""

import logging
import math
from typing import Optional, Union


TRUE_VALUES = {"true", "1", "yes", "on"}


def parse_bool(value: Optional[str], default: bool = False) -> bool:
    """
    Parse a boolean environment value.

    Args:
        value: Raw string (e.g., "true", "0"), or None if unset

    Returns:
        True for true/1/yes/on (any case), the default when unset,
        False otherwise
    """
    if value is None or not value.strip():
        return default
    return value.strip().lower() in TRUE_VALUES


def parse_positive_int(value: Optional[str], default: int) -> int:
    """
    Parse a positive integer, falling back to the default.

    Unset, non-numeric, zero and negative values all give the default, so a
    typo in an interval never turns into "poll constantly".
    """
    if value is None:
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def parse_setpoint(value: Union[str, float, int, None]) -> Optional[float]:
    """
    Parse a temperature setpoint the hops API sends as text.

    Args:
        value: "55.00", 55.0, or None

    Returns:
        The numeric value, or None if missing or not a finite number
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


def parse_positive_float(value: Optional[str], default: float) -> float:
    """Like parse_positive_int, for values such as timeouts in seconds."""
    if value is None:
        return default
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if math.isfinite(parsed) and parsed > 0 else default


def parse_log_level(value: Optional[str], default: str = "INFO") -> str:
    """
    Normalise a LOG_LEVEL value.

    Returns:
        The upper-cased level name if logging knows it, else the default
    """
    if value is None or not value.strip():
        return default
    name = value.strip().upper()
    return name if isinstance(logging.getLevelName(name), int) else default
