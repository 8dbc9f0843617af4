"""
Tado API Client
===============

Typed access to the four tado° endpoints the collector reads.

    GET my.tado.com/api/v2/me                    -> Profile (which homes?)
    GET my.tado.com/api/v2/homes/{id}/weather    -> WeatherPayload
    GET hops.tado.com/homes/{id}/rooms           -> list[RoomPayload]
    GET hops.tado.com/homes/{id}/heatPump        -> HeatPumpPayload

Every call goes through TadoSession.authorized_request, so token refresh is
handled for us. Anything else that goes wrong (network, 5xx, a payload that
doesn't match) comes out as a FetchError. AuthError passes through untouched.
"""

import logging
from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

from tado_collector.models import HeatPumpPayload, Profile, RoomPayload, WeatherPayload
from tado_collector.services.errors import FetchError
from tado_collector.services.tado_auth import TadoSession

logger = logging.getLogger(__name__)


_ROOM_LIST = TypeAdapter(list[RoomPayload])


class TadoClient:
    """Read-only client for the tado° REST APIs."""

    API_URL = "https://my.tado.com/api/v2"
    HOPS_URL = "https://hops.tado.com"

    def __init__(self, session: TadoSession):
        self.session = session

    async def get_me(self) -> Profile:
        data = await self._get_json(f"{self.API_URL}/me")
        return self._parse(Profile, data, "profile")

    async def get_weather(self, home_id: int) -> WeatherPayload:
        data = await self._get_json(f"{self.API_URL}/homes/{home_id}/weather")
        return self._parse(WeatherPayload, data, "weather")

    async def get_rooms(self, home_id: int) -> list[RoomPayload]:
        data = await self._get_json(f"{self.HOPS_URL}/homes/{home_id}/rooms?ngsw-bypass=true")
        try:
            return _ROOM_LIST.validate_python(data)
        except ValidationError as e:
            raise FetchError(f"Malformed rooms payload: {e}") from e

    async def get_heat_pump(self, home_id: int) -> HeatPumpPayload:
        data = await self._get_json(f"{self.HOPS_URL}/homes/{home_id}/heatPump?ngsw-bypass=true")
        return self._parse(HeatPumpPayload, data, "heat pump")

    async def _get_json(self, url: str) -> Any:
        """GET a URL and return its JSON body, or raise FetchError."""
        try:
            response = await self.session.authorized_request("GET", url)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise FetchError(f"HTTP {e.response.status_code} from {url}") from e
        except httpx.HTTPError as e:
            raise FetchError(f"Request to {url} failed: {e}") from e
        except ValueError as e:
            raise FetchError(f"Invalid JSON from {url}: {e}") from e

    @staticmethod
    def _parse(model, data: Any, what: str):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise FetchError(f"Malformed {what} payload: {e}") from e
