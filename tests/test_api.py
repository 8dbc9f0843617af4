import pytest
from fastapi.testclient import TestClient

from tado_collector import main
from tado_collector.models import PollCategory
from tado_collector.services import InfluxSink

from conftest import FIXED_NOW, FakeInfluxClient


@pytest.fixture
def api(session, poller, sink):
    main.set_services(session, poller, sink)
    yield TestClient(main.app)
    main._services.clear()
    main.set_session(None)


@pytest.fixture
def logged_in_api(logged_in_session, poller, sink):
    main.set_services(logged_in_session, poller, sink)
    yield TestClient(main.app)
    main._services.clear()
    main.set_session(None)


# =============================================================================
# LOGIN
# =============================================================================

def test_login_start(api):
    response = api.post("/api/login/start")
    assert response.status_code == 200
    body = response.json()
    assert body["device_code"] == "dev-123"
    assert body["user_code"] == "ABC123"
    assert body["verification_uri"] == "https://login.tado.com/oauth2/device"
    assert body["expires_in"] == 300
    assert body["interval"] == 5


def test_login_start_rejected(api, cloud):
    cloud.device_authorize_response = (401, {"error": "invalid_client"})
    response = api.post("/api/login/start")
    assert response.status_code == 500
    assert "invalid_client" in response.json()["error"]


def test_login_poll_requires_code(api):
    response = api.get("/api/login/poll")
    assert response.status_code == 400
    assert response.json() == {"error": "Missing code"}


def test_login_poll_pending(api, cloud):
    cloud.token_responses = [(400, {"error": "authorization_pending"})]
    response = api.get("/api/login/poll", params={"code": "dev-123"})
    assert response.status_code == 200
    assert response.json() == {"error": "authorization_pending"}


def test_login_poll_success(api, cloud, session):
    cloud.token_responses = [(200, {"access_token": "access-5", "refresh_token": "refresh-5", "expires_in": 599})]
    response = api.get("/api/login/poll", params={"code": "dev-123"})
    assert response.status_code == 200
    body = response.json()
    assert body["access_token"] == "access-5"
    assert body["refresh_token"] == "refresh-5"
    assert session.is_authenticated()


def test_login_poll_denied(api, cloud):
    cloud.token_responses = [(400, {"error": "access_denied"})]
    response = api.get("/api/login/poll", params={"code": "dev-123"})
    assert response.status_code == 500
    assert "access_denied" in response.json()["error"]


# =============================================================================
# HEALTH
# =============================================================================

def test_health_before_any_cycle(api):
    response = api.get("/health")
    assert response.status_code == 200
    assert response.json() == {
        "status": "UP",
        "authenticated": False,
        "influxConnected": True,
        "lastUpdate": None,
        "apiCalls24h": 0,
        "intervals": {"weather": 3_600_000, "rooms": 600_000, "heatPump": 600_000},
        "lastRun": {},
    }


def test_health_after_cycle(logged_in_api, poller):
    import asyncio

    poller.scheduler.is_due(PollCategory.ROOMS, int(FIXED_NOW.timestamp() * 1000))
    asyncio.run(poller.run_cycle())

    body = logged_in_api.get("/health").json()
    assert body["authenticated"] is True
    assert body["lastUpdate"] == FIXED_NOW.isoformat()
    assert body["apiCalls24h"] == 3
    assert set(body["lastRun"]) == {"weather", "rooms", "heatPump"}


def test_health_reports_unreachable_influx(session, poller):
    sink = InfluxSink("u", "t", "o", "b", client=FakeInfluxClient(reachable=False))
    main.set_services(session, poller, sink)
    try:
        body = TestClient(main.app).get("/health").json()
    finally:
        main._services.clear()
        main.set_session(None)
    assert body["influxConnected"] is False


def test_health_before_startup():
    response = TestClient(main.app).get("/health")
    assert response.status_code == 503


def test_root(api):
    body = api.get("/").json()
    assert body["endpoints"]["health"] == "GET /health"


# =============================================================================
# SCHEDULING AND STARTUP
# =============================================================================

def test_schedule_jobs(poller):
    from datetime import datetime, timedelta, timezone

    from apscheduler.schedulers.asyncio import AsyncIOScheduler

    scheduler = AsyncIOScheduler()
    before = datetime.now(timezone.utc)
    main.schedule_jobs(scheduler, poller)
    after = datetime.now(timezone.utc)

    assert {job.id for job in scheduler.get_jobs()} == {"poll_cycle", "initial_poll", "reset_call_counter"}

    tick = scheduler.get_job("poll_cycle")
    assert tick.func == poller.run_cycle
    assert tick.trigger.interval == timedelta(seconds=60)
    assert tick.max_instances == 1

    initial = scheduler.get_job("initial_poll")
    assert initial.func == poller.run_cycle
    assert before + timedelta(seconds=5) <= initial.trigger.run_date <= after + timedelta(seconds=5)

    reset = scheduler.get_job("reset_call_counter")
    assert reset.func == poller.reset_call_counter
    assert reset.trigger.interval == timedelta(hours=24)


def test_startup_without_required_config_fails(monkeypatch):
    import asyncio

    from tado_collector import config
    from tado_collector.services.errors import ConfigError

    monkeypatch.setattr(config, "load_dotenv", lambda: False)
    for key in config.REQUIRED_ENV:
        monkeypatch.delenv(key, raising=False)

    async def start():
        async with main.lifespan(main.app):
            pass

    with pytest.raises(ConfigError) as exc:
        asyncio.run(start())
    assert "TADO_CLIENT_ID" in str(exc.value)
    assert main._services == {}
