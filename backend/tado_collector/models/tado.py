"""
Tado Models
===========
Pydantic models for everything that flows through the collector.

This module defines all data structures used throughout the application:
- Auth models: OAuth token set and device-flow handshake
- Vendor payloads: What the tado° API sends back (every nested path optional)
- Internal models: Measurements, per-category results, cycle reports

VENDOR PAYLOAD SHAPES:
    The tado° API is not consistent about which nested objects are present.
    A room with heating switched off has no setting.temperature, a heat pump
    without hot water has no domesticHotWater block, and so on. Every nested
    object is therefore Optional and extra keys are ignored, so the
    extractors can match on what is actually there.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# ENUMS
# =============================================================================

class PollCategory(str, Enum):
    """
    The three independently scheduled data domains.

    The values double as the keys used in configuration and in /health.
    """
    WEATHER = "weather"
    ROOMS = "rooms"
    HEAT_PUMP = "heatPump"


class SessionState(str, Enum):
    """
    Auth session state machine.

    - UNAUTHENTICATED: No trusted token set held
    - AUTHENTICATED: Token set held, requests carry its access token
    - REFRESHING: A refresh-token exchange is in flight
    """
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"


class CycleStatus(str, Enum):
    """How a polling cycle ended."""
    COMPLETED = "completed"
    UNAUTHENTICATED = "unauthenticated"
    NO_HOMES = "no_homes"
    FAILED = "failed"
    SKIPPED = "skipped"


# =============================================================================
# AUTH MODELS
# =============================================================================

class TokenSet(BaseModel):
    """
    OAuth token set as returned by the tado° token endpoint.

    Unknown vendor fields (scope, userId, ...) are kept so the persisted file
    round-trips whatever the server sent.
    """
    model_config = ConfigDict(extra="allow")

    access_token: str = Field(..., min_length=1, description="Bearer credential")
    refresh_token: Optional[str] = Field(None, description="Long-lived refresh credential")
    expires_in: Optional[int] = Field(None, description="Access token lifetime (seconds)")
    token_type: Optional[str] = Field(None, description="Usually 'bearer'")
    obtained_at: Optional[datetime] = Field(None, description="When this set was issued to us")


class DeviceAuthorization(BaseModel):
    """
    Response of the device authorization endpoint.

    Shown to the user by the login helper; never persisted.
    """
    model_config = ConfigDict(extra="allow")

    device_code: str
    user_code: str
    verification_uri: str
    verification_uri_complete: Optional[str] = None
    expires_in: int
    interval: int = 5


class PendingAuthorization(BaseModel):
    """Returned while the user has not yet approved the device code."""
    error: str = "authorization_pending"


# =============================================================================
# VENDOR PAYLOADS
# =============================================================================

class VendorModel(BaseModel):
    """Base for tado° payloads: ignore anything we don't read."""
    model_config = ConfigDict(extra="ignore")


class Home(VendorModel):
    id: int
    name: Optional[str] = None


class Profile(VendorModel):
    """Subset of GET /me."""
    homes: list[Home] = Field(default_factory=list)

    @field_validator("homes", mode="before")
    @classmethod
    def _null_homes_as_empty(cls, v):
        return [] if v is None else v


class Percentage(VendorModel):
    percentage: Optional[float] = None


class Celsius(VendorModel):
    celsius: Optional[float] = None


class TextValue(VendorModel):
    value: Optional[str] = None


class NumericValue(VendorModel):
    value: Optional[float] = None


class WeatherPayload(VendorModel):
    """GET /homes/{id}/weather"""
    solarIntensity: Optional[Percentage] = None
    outsideTemperature: Optional[Celsius] = None
    weatherState: Optional[TextValue] = None


class SensorDataPoints(VendorModel):
    humidity: Optional[Percentage] = None
    insideTemperature: Optional[NumericValue] = None


class RoomSetting(VendorModel):
    temperature: Optional[NumericValue] = None


class RoomPayload(VendorModel):
    """One entry of GET hops/homes/{id}/rooms"""
    id: Optional[Union[int, str]] = None
    name: Optional[str] = None
    heatingPower: Optional[Percentage] = None
    sensorDataPoints: Optional[SensorDataPoints] = None
    setting: Optional[RoomSetting] = None


class SetpointValue(VendorModel):
    # The hops API sends the hot water setpoint as text ("55.00")
    value: Optional[Union[str, float]] = None


class BlockSetpoint(VendorModel):
    setpointValue: Optional[SetpointValue] = None


class DomesticHotWater(VendorModel):
    currentTemperatureInCelsius: Optional[float] = None
    currentBlockSetpoint: Optional[BlockSetpoint] = None


class HeatPumpHeating(VendorModel):
    setting: Optional[RoomSetting] = None


class HeatPumpPayload(VendorModel):
    """GET hops/homes/{id}/heatPump"""
    heating: Optional[HeatPumpHeating] = None
    domesticHotWater: Optional[DomesticHotWater] = None


# =============================================================================
# INTERNAL MODELS
# =============================================================================

FieldValue = Union[bool, int, float, str]


class Measurement(BaseModel):
    """
    A single named, tagged set of field values destined for InfluxDB.

    Fields:
        measurement: Measurement name (weather, rooms, heat_pump, errors)
        tags: Identifying dimensions, always strings (homeId, roomId, ...)
        fields: Observed values; never empty
        timestamp: Explicit point time, or None to let the server stamp it
    """
    measurement: str
    tags: dict[str, str] = Field(default_factory=dict)
    fields: dict[str, FieldValue]
    timestamp: Optional[datetime] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _stringify_tags(cls, value):
        return {str(k): str(v) for k, v in (value or {}).items()}

    @field_validator("fields")
    @classmethod
    def _require_fields(cls, value):
        if not value:
            raise ValueError("a measurement needs at least one field")
        return value


class CategoryResult(BaseModel):
    """
    Outcome of one category for one home within a cycle.

    A failed category is reported here instead of being raised, so one bad
    payload never stops the rest of the cycle.
    """
    category: PollCategory
    home_id: int
    ok: bool
    measurements_written: int = 0
    error: Optional[str] = None


class CycleReport(BaseModel):
    """What a single call to PollOrchestrator.run_cycle() did."""
    status: CycleStatus
    api_calls: int = 0
    results: list[CategoryResult] = Field(default_factory=list)
    error: Optional[str] = None
    completed_at: Optional[datetime] = None

    @property
    def failed_categories(self) -> list[CategoryResult]:
        return [r for r in self.results if not r.ok]
