"""
Field Extraction
================

Turns tado payloads into Measurements.

The rules here follow what the API actually sends:

WEATHER (one measurement per home):
    solarIntensityPercentage  <- solarIntensity.percentage (0 if missing)
    outsideTemperature        <- outsideTemperature.celsius (required)
    weatherState              <- weatherState.value (required)

ROOMS (one measurement per room, only fields that are present):
    heatingPowerPercentage    <- heatingPower.percentage
    humidity                  <- sensorDataPoints.humidity.percentage
    temperature               <- sensorDataPoints.insideTemperature.value
    setTemperature            <- setting.temperature.value

HEAT PUMP (one measurement per home, only fields that are present):
    heatPumpSetTemperature               <- heating.setting.temperature.value
    hotWaterCurrentTemperatureInCelsius  <- domesticHotWater.currentTemperatureInCelsius
    hotWaterSetTemperatureInCelsius      <- domesticHotWater.currentBlockSetpoint.setpointValue.value (text!)

A room or heat pump with nothing to report produces no measurement at all.
"""

import logging
from typing import Optional

from tado_collector.models import (
    HeatPumpPayload,
    Measurement,
    RoomPayload,
    WeatherPayload,
)
from tado_collector.services.errors import FetchError
from tado_collector.utils.validation import parse_setpoint

logger = logging.getLogger(__name__)


def extract_weather(home_id: int, weather: WeatherPayload) -> Measurement:
    """Weather measurement; raises FetchError if temperature or state is missing."""
    if weather.outsideTemperature is None or weather.outsideTemperature.celsius is None:
        raise FetchError("Weather payload is missing outsideTemperature.celsius")
    if weather.weatherState is None or weather.weatherState.value is None:
        raise FetchError("Weather payload is missing weatherState.value")

    celsius = weather.outsideTemperature.celsius
    state = weather.weatherState.value
    solar = weather.solarIntensity.percentage if weather.solarIntensity else None

    return Measurement(
        measurement="weather",
        tags={"homeId": home_id},
        fields={
            "solarIntensityPercentage": solar or 0,
            "outsideTemperature": celsius,
            "weatherState": state,
        },
    )


def extract_room(home_id: int, room: RoomPayload) -> Optional[Measurement]:
    """Room measurement, or None if the room reports nothing we record."""
    fields = {}

    if room.heatingPower and room.heatingPower.percentage is not None:
        fields["heatingPowerPercentage"] = room.heatingPower.percentage

    points = room.sensorDataPoints
    if points and points.humidity and points.humidity.percentage is not None:
        fields["humidity"] = points.humidity.percentage
    if points and points.insideTemperature and points.insideTemperature.value is not None:
        fields["temperature"] = points.insideTemperature.value

    setting = room.setting
    if setting and setting.temperature and setting.temperature.value is not None:
        fields["setTemperature"] = setting.temperature.value

    if not fields:
        return None

    tags = {"homeId": home_id, "roomId": room.id}
    if room.name is not None:
        tags["roomName"] = room.name
    return Measurement(measurement="rooms", tags=tags, fields=fields)


def extract_rooms(home_id: int, rooms: list[RoomPayload]) -> list[Measurement]:
    measurements = []
    for room in rooms:
        if room.id is None:
            logger.warning(f"Room without id in home {home_id} ({room.name!r}), skipping")
            continue
        measurement = extract_room(home_id, room)
        if measurement is None:
            logger.debug(f"Room {room.id} in home {home_id} has no data, skipping")
            continue
        measurements.append(measurement)
    return measurements


def extract_heat_pump(home_id: int, heat_pump: HeatPumpPayload) -> Optional[Measurement]:
    """Heat pump measurement, or None if the payload has none of our fields."""
    fields = {}

    heating = heat_pump.heating
    if heating and heating.setting and heating.setting.temperature \
            and heating.setting.temperature.value is not None:
        fields["heatPumpSetTemperature"] = heating.setting.temperature.value

    hot_water = heat_pump.domesticHotWater
    if hot_water:
        if hot_water.currentTemperatureInCelsius is not None:
            fields["hotWaterCurrentTemperatureInCelsius"] = hot_water.currentTemperatureInCelsius

        block = hot_water.currentBlockSetpoint
        if block and block.setpointValue and block.setpointValue.value is not None:
            setpoint = parse_setpoint(block.setpointValue.value)
            if setpoint is None:
                logger.warning(
                    f"Home {home_id}: unreadable hot water setpoint {block.setpointValue.value!r}"
                )
            else:
                fields["hotWaterSetTemperatureInCelsius"] = setpoint

    if not fields:
        return None
    return Measurement(measurement="heat_pump", tags={"homeId": home_id}, fields=fields)
