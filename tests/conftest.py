"""Shared fixtures: a fake tado cloud, a recording InfluxDB client, sessions."""

import json
from datetime import datetime, timezone
from urllib.parse import parse_qs

import httpx
import pytest

from tado_collector.models import PollCategory, TokenSet
from tado_collector.services import (
    InfluxSink,
    IntervalScheduler,
    PollOrchestrator,
    TadoClient,
    TadoSession,
    TokenStore,
)


FIXED_NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

WEATHER = {
    "solarIntensity": {"type": "PERCENTAGE", "percentage": 42.5},
    "outsideTemperature": {"celsius": 7.3, "fahrenheit": 45.1},
    "weatherState": {"type": "WEATHER_STATE", "value": "CLOUDY_MOSTLY"},
}

ROOMS = [
    {
        "id": 1,
        "name": "Living Room",
        "heatingPower": {"percentage": 30},
        "sensorDataPoints": {
            "insideTemperature": {"value": 21.4},
            "humidity": {"percentage": 48.2},
        },
        "setting": {"power": "ON", "temperature": {"value": 21.0}},
    },
    {
        "id": 2,
        "name": "Hallway",
        "setting": {"power": "OFF", "temperature": None},
    },
]

HEAT_PUMP = {
    "heating": {"setting": {"temperature": {"value": 35.0}}},
    "domesticHotWater": {
        "currentTemperatureInCelsius": 48.5,
        "currentBlockSetpoint": {"setpointValue": {"value": "55.00"}},
    },
}


class FakeTadoCloud:
    """
    httpx MockTransport handler standing in for login.tado.com, my.tado.com
    and hops.tado.com.

    Tests tweak `routes` (path -> (status, body)) and inspect `requests`.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.valid_tokens = {"access-1"}
        self.routes = {
            "/api/v2/me": (200, {"homes": [{"id": 1, "name": "Home"}]}),
        }
        self.token_responses = []
        self.accept_issued_tokens = True
        self.device_authorize_response = (
            200,
            {
                "device_code": "dev-123",
                "user_code": "ABC123",
                "verification_uri": "https://login.tado.com/oauth2/device",
                "verification_uri_complete": "https://login.tado.com/oauth2/device?user_code=ABC123",
                "expires_in": 300,
                "interval": 5,
            },
        )

    def set_home_data(self, home_id, weather=WEATHER, rooms=ROOMS, heat_pump=HEAT_PUMP):
        self.routes[f"/api/v2/homes/{home_id}/weather"] = (200, weather)
        self.routes[f"/homes/{home_id}/rooms"] = (200, rooms)
        self.routes[f"/homes/{home_id}/heatPump"] = (200, heat_pump)

    def form(self, request: httpx.Request) -> dict:
        return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def api_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host != "login.tado.com"]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/oauth2/device_authorize":
            status, body = self.device_authorize_response
            return httpx.Response(status, json=body)

        if path == "/oauth2/token":
            status, body = self.token_responses.pop(0)
            if status == 200 and body.get("access_token") and self.accept_issued_tokens:
                self.valid_tokens.add(body["access_token"])
            return httpx.Response(status, json=body)

        auth = request.headers.get("Authorization", "")
        if auth.removeprefix("Bearer ") not in self.valid_tokens:
            return httpx.Response(401, json={"errors": [{"code": "unauthorized"}]})

        if path not in self.routes:
            return httpx.Response(404, json={"errors": [{"code": "notFound"}]})
        status, body = self.routes[path]
        return httpx.Response(status, content=json.dumps(body).encode())


class FakeWriteApi:
    def __init__(self, fail=False):
        self.points = []
        self.fail = fail

    def write(self, bucket, org, record):
        if self.fail:
            raise ConnectionError("influx down")
        self.points.append(record)


class FakeInfluxClient:
    """Stands in for influxdb_client.InfluxDBClient."""

    def __init__(self, fail_writes=False, reachable=True):
        self.write_api_obj = FakeWriteApi(fail=fail_writes)
        self.reachable = reachable
        self.write_api_calls = 0
        self.closed = False

    def write_api(self, write_options=None):
        self.write_api_calls += 1
        return self.write_api_obj

    def ping(self):
        return self.reachable

    def close(self):
        self.closed = True

    @property
    def lines(self) -> list[str]:
        return [p.to_line_protocol() for p in self.write_api_obj.points]


@pytest.fixture
def cloud():
    fake = FakeTadoCloud()
    fake.set_home_data(1)
    return fake


@pytest.fixture
def store(tmp_path):
    return TokenStore(tmp_path / "data" / "token.json")


def make_session(cloud, store) -> TadoSession:
    client = httpx.AsyncClient(transport=httpx.MockTransport(cloud))
    return TadoSession(client_id="test-client", store=store, http_client=client)


@pytest.fixture
def session(cloud, store):
    return make_session(cloud, store)


@pytest.fixture
def logged_in_session(cloud, store):
    store.save(TokenSet(access_token="access-1", refresh_token="refresh-1", expires_in=600))
    s = make_session(cloud, store)
    s.load()
    return s


@pytest.fixture
def influx():
    return FakeInfluxClient()


@pytest.fixture
def sink(influx):
    return InfluxSink("http://influx:8086", "token", "org", "bucket", client=influx)


@pytest.fixture
def intervals():
    return {
        PollCategory.WEATHER: 3_600_000,
        PollCategory.ROOMS: 600_000,
        PollCategory.HEAT_PUMP: 600_000,
    }


@pytest.fixture
def poller(logged_in_session, sink, intervals):
    return PollOrchestrator(
        session=logged_in_session,
        client=TadoClient(logged_in_session),
        scheduler=IntervalScheduler(intervals),
        sink=sink,
        clock=lambda: FIXED_NOW,
    )
