"""
Models Package
==============

This is where all our data models live.
Import from here instead of the individual files.

Example:
    from tado_collector.models import TokenSet, PollCategory
"""

from .tado import (
    # Enums
    PollCategory,
    SessionState,
    CycleStatus,

    # OAuth device flow
    TokenSet,
    DeviceAuthorization,
    PendingAuthorization,

    # What the tado API sends us
    Home,
    Profile,
    WeatherPayload,
    RoomPayload,
    HeatPumpPayload,

    # What we produce
    FieldValue,
    Measurement,
    CategoryResult,
    CycleReport,
)

__all__ = [
    "PollCategory",
    "SessionState",
    "CycleStatus",
    "TokenSet",
    "DeviceAuthorization",
    "PendingAuthorization",
    "Home",
    "Profile",
    "WeatherPayload",
    "RoomPayload",
    "HeatPumpPayload",
    "FieldValue",
    "Measurement",
    "CategoryResult",
    "CycleReport",
]
