"""
Tado Collector - Backend API
============================
FastAPI application that polls the tado° cloud API and writes the readings
to InfluxDB.

ARCHITECTURE:

    [tado cloud API] <--poll every minute-- [This Backend] --write--> [InfluxDB]
                                                  ^
                                                  |
                                  [Login helper / health checks]

WHAT GETS COLLECTED:
    1. Weather   - Outside temperature, solar intensity, weather state (hourly)
    2. Rooms     - Temperature, humidity, heating power, set point (every 10 min)
    3. Heat pump - Heating and hot water set points (every 10 min)

HOW TO RUN:
    # Install
    pip install -e .

    # Copy environment config
    cp backend/env.example.txt .env
    # Edit .env with your settings

    # Run the server
    tado-collector
    # or: uvicorn tado_collector.main:app --port 3000

    # Log in once: POST /api/login/start, open the URL, then poll
    # GET /api/login/poll?code=<device_code> until you get a token back.

Author: Tado Collector Team
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

import uvicorn
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI, HTTPException

from tado_collector.config import Settings
from tado_collector.routers import login_router, set_session
from tado_collector.services import (
    InfluxSink,
    IntervalScheduler,
    PollOrchestrator,
    TadoClient,
    TadoSession,
    TokenStore,
)
from tado_collector.services.errors import ConfigError
from tado_collector.utils import parse_log_level


logging.basicConfig(
    level=parse_log_level(os.getenv("LOG_LEVEL")),
    format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)


POLL_TICK_SECONDS = 60
INITIAL_POLL_DELAY_SECONDS = 5
CALL_COUNTER_RESET_HOURS = 24


# =============================================================================
# SERVICE WIRING
# =============================================================================

_services = {}  # Filled in by set_services() when the app starts


def set_services(session: TadoSession, poller: PollOrchestrator, sink: InfluxSink):
    """Hand the running services to the endpoints."""
    _services["session"] = session
    _services["poller"] = poller
    _services["sink"] = sink
    set_session(session)


def schedule_jobs(scheduler: AsyncIOScheduler, poller: PollOrchestrator):
    """
    Register the recurring jobs.

    - Every minute: run a polling cycle (it decides itself what is due)
    - Once, shortly after startup: first cycle
    - Every 24 hours: reset the API call counter
    """
    scheduler.add_job(
        poller.run_cycle,
        trigger=IntervalTrigger(seconds=POLL_TICK_SECONDS),
        id="poll_cycle",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.add_job(
        poller.run_cycle,
        trigger=DateTrigger(
            run_date=datetime.now(timezone.utc) + timedelta(seconds=INITIAL_POLL_DELAY_SECONDS)
        ),
        id="initial_poll",
        replace_existing=True,
    )
    scheduler.add_job(
        poller.reset_call_counter,
        trigger=IntervalTrigger(hours=CALL_COUNTER_RESET_HOURS),
        id="reset_call_counter",
        replace_existing=True,
    )


# =============================================================================
# APPLICATION LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    STARTUP:
        1. Load settings (missing configuration stops the process)
        2. Load the saved token set
        3. Build the tado client, InfluxDB sink and poller
        4. Start the scheduler

    SHUTDOWN:
        1. Stop the scheduler
        2. Close HTTP and InfluxDB clients
    """
    # ========== STARTUP ==========
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        logger.critical(str(e))
        raise

    logging.getLogger().setLevel(settings.log_level)

    store = TokenStore(settings.token_file)
    session = TadoSession(
        client_id=settings.client_id,
        store=store,
        request_timeout=settings.request_timeout,
    )
    session.load()

    sink = InfluxSink(
        url=settings.influx_url,
        token=settings.influx_token,
        org=settings.influx_org,
        bucket=settings.influx_bucket,
        dry_run=settings.dry_run,
    )
    poller = PollOrchestrator(
        session=session,
        client=TadoClient(session),
        scheduler=IntervalScheduler(settings.intervals),
        sink=sink,
        dry_run=settings.dry_run,
    )
    set_services(session, poller, sink)

    scheduler = AsyncIOScheduler()
    schedule_jobs(scheduler, poller)
    scheduler.start()

    logger.info("=" * 60)
    logger.info("TADO COLLECTOR - Starting Backend")
    logger.info("=" * 60)
    for category, interval in settings.intervals.items():
        logger.info(f"   {category.value} interval: {interval} ms")
    logger.info(f"   Token file: {settings.token_file}")
    logger.info(f"   Authenticated: {session.is_authenticated()}")
    if settings.dry_run:
        logger.warning("!!! DRY RUN MODE ENABLED - No data will be written to InfluxDB !!!")
    logger.info("=" * 60)

    yield  # Application runs here

    # ========== SHUTDOWN ==========
    logger.info("Shutting down...")
    scheduler.shutdown(wait=False)
    await session.close()
    sink.close()
    logger.info("Shutdown complete")


# =============================================================================
# CREATE FASTAPI APPLICATION
# =============================================================================

app = FastAPI(
    title="Tado Collector API",
    description="""
## Overview

Polls the tado° cloud API and writes weather, room and heat pump readings
to InfluxDB.

## Login

1. `POST /api/login/start` - returns a `user_code` and `verification_uri`
2. Open the URL and approve the code
3. `GET /api/login/poll?code=<device_code>` until it returns a token set

## Health

`GET /health` shows whether we're logged in, whether InfluxDB answers, when
the last cycle completed and how many tado API calls were made today.
    """,
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(login_router)


# =============================================================================
# ROOT ENDPOINTS
# =============================================================================

@app.get("/", summary="API Information")
async def root():
    """Root endpoint with API overview."""
    return {
        "name": "Tado Collector API",
        "version": "1.0.0",
        "endpoints": {
            "login_start": "POST /api/login/start",
            "login_poll": "GET /api/login/poll?code=<device_code>",
            "health": "GET /health",
        },
    }


@app.get("/health", summary="Health Check")
async def health():
    """Login state, InfluxDB reachability and poller run state."""
    if not _services:
        raise HTTPException(status_code=503, detail="Server not fully started yet")

    session = _services["session"]
    poller = _services["poller"]
    sink = _services["sink"]

    return {
        "status": "UP",
        "authenticated": session.is_authenticated(),
        "influxConnected": await sink.check_health(),
        **poller.snapshot(),
    }


def run():
    """Console entry point: serve on TADO_LOGIN_PORT."""
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        logger.critical(str(e))
        sys.exit(1)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
