"""
Poll Orchestrator
=================

This is the BRAIN of the collector!

WHAT IT DOES:
------------
Every minute the scheduler calls run_cycle(), which:
1. Checks we're logged in (if not, there's nothing to do yet)
2. Fetches the profile to find out which homes exist
3. Asks the IntervalScheduler which categories are due
4. For every home and every due category: fetch, extract, write
5. Records when the cycle finished (shown by /health)

FAILURE RULES:
-------------
- One category failing (network blip, odd payload) is logged and reported
  in the CategoryResult. The other categories and homes carry on.
- The profile fetch failing aborts the cycle. That failure is itself
  written to InfluxDB as an "errors" measurement, so gaps in the graphs
  can be explained later.
- If a cycle is still running when the next tick fires, the new one is
  skipped.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from tado_collector.models import (
    CategoryResult,
    CycleReport,
    CycleStatus,
    Home,
    Measurement,
    PollCategory,
    Profile,
)
from tado_collector.services.errors import CycleFatalError
from tado_collector.services.extractors import (
    extract_heat_pump,
    extract_rooms,
    extract_weather,
)
from tado_collector.services.influx_sink import InfluxSink
from tado_collector.services.interval_scheduler import IntervalScheduler
from tado_collector.services.tado_auth import TadoSession
from tado_collector.services.tado_client import TadoClient

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RunState:
    """
    Process-wide run bookkeeping, owned by one PollOrchestrator.

    Only the orchestrator mutates it; /health reads it through snapshot().
    """

    def __init__(self):
        self.last_update: Optional[datetime] = None
        self.api_calls = 0

    def track_call(self):
        self.api_calls += 1


class PollOrchestrator:
    """
    Drives polling cycles across all homes and categories.

    HOW TO USE:
    ----------
    poller = PollOrchestrator(session, client, scheduler, sink)
    report = await poller.run_cycle()
    if report.failed_categories:
        ...
    """

    def __init__(
        self,
        session: TadoSession,
        client: TadoClient,
        scheduler: IntervalScheduler,
        sink: InfluxSink,
        dry_run: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session = session
        self.client = client
        self.scheduler = scheduler
        self.sink = sink
        self.dry_run = dry_run
        self.clock = clock

        self.state = RunState()
        self._cycle_lock = asyncio.Lock()

    # =========================================================================
    # STATE ACCESS
    # =========================================================================

    def snapshot(self) -> dict:
        """Read-only view of the run state, shaped for /health."""
        last_update = self.state.last_update
        return {
            "lastUpdate": last_update.isoformat() if last_update else None,
            "apiCalls24h": self.state.api_calls,
            "intervals": {c.value: ms for c, ms in self.scheduler.intervals.items()},
            "lastRun": {c.value: ms for c, ms in self.scheduler.last_run.items()},
        }

    def reset_call_counter(self):
        """Called by the daily job."""
        logger.info(f"Resetting API call counter (was {self.state.api_calls})")
        self.state.api_calls = 0

    def _now_millis(self) -> int:
        return int(self.clock().timestamp() * 1000)

    # =========================================================================
    # THE CYCLE
    # =========================================================================

    async def run_cycle(self) -> CycleReport:
        """Run one polling cycle (or skip it if one is already running)."""
        if self._cycle_lock.locked():
            logger.warning("Previous polling cycle still running, skipping this one")
            return CycleReport(status=CycleStatus.SKIPPED)

        async with self._cycle_lock:
            return await self._run_cycle()

    async def _run_cycle(self) -> CycleReport:
        if not self.session.is_authenticated():
            logger.info("Not authenticated. Waiting for login...")
            return CycleReport(status=CycleStatus.UNAUTHENTICATED)

        calls_before = self.state.api_calls
        results: list[CategoryResult] = []

        try:
            profile = await self._fetch_profile()
            if not profile.homes:
                logger.info("Profile has no homes, nothing to poll")
                return CycleReport(
                    status=CycleStatus.NO_HOMES,
                    api_calls=self.state.api_calls - calls_before,
                )

            now_millis = self._now_millis()
            due = [c for c in PollCategory if self.scheduler.is_due(c, now_millis)]
            if due:
                logger.info(f"Due this cycle: {', '.join(c.value for c in due)}")

            for home in profile.homes:
                logger.info(f"Polling home {home.id}...")
                for category in due:
                    results.append(await self._poll_category(home, category))

            completed_at = self.clock()
            self.state.last_update = completed_at
            logger.info(f"Polling completed at {completed_at.isoformat()}")
            return CycleReport(
                status=CycleStatus.COMPLETED,
                api_calls=self.state.api_calls - calls_before,
                results=results,
                completed_at=completed_at,
            )

        except Exception as e:
            logger.error(f"Error during polling: {e}")
            await self.sink.write("errors", {"type": "polling"}, {"message": str(e)})
            return CycleReport(
                status=CycleStatus.FAILED,
                api_calls=self.state.api_calls - calls_before,
                results=results,
                error=str(e),
            )

    async def _fetch_profile(self) -> Profile:
        self.state.track_call()
        try:
            return await self.client.get_me()
        except Exception as e:
            raise CycleFatalError(f"Profile fetch failed: {e}") from e

    async def _poll_category(self, home: Home, category: PollCategory) -> CategoryResult:
        """Fetch + extract + write one category for one home, never raising."""
        logger.info(f"Polling {category.value} for home {home.id}...")
        try:
            measurements = await self._fetch_measurements(home.id, category)
            written = 0
            for measurement in measurements:
                if await self.sink.write_measurement(measurement):
                    written += 1
            return CategoryResult(
                category=category,
                home_id=home.id,
                ok=True,
                measurements_written=written,
            )
        except Exception as e:
            logger.error(f"Error polling {category.value} for home {home.id}: {e}")
            return CategoryResult(
                category=category,
                home_id=home.id,
                ok=False,
                error=str(e),
            )

    async def _fetch_measurements(self, home_id: int, category: PollCategory) -> list[Measurement]:
        self.state.track_call()

        if category == PollCategory.WEATHER:
            weather = await self.client.get_weather(home_id)
            self._dump_payload("Weather", weather)
            return [extract_weather(home_id, weather)]

        if category == PollCategory.ROOMS:
            rooms = await self.client.get_rooms(home_id)
            self._dump_payload("Rooms", rooms)
            return extract_rooms(home_id, rooms)

        heat_pump = await self.client.get_heat_pump(home_id)
        self._dump_payload("Heat Pump", heat_pump)
        measurement = extract_heat_pump(home_id, heat_pump)
        return [measurement] if measurement else []

    def _dump_payload(self, label: str, payload):
        if not self.dry_run:
            return
        if isinstance(payload, list):
            dumped = [item.model_dump(exclude_none=True) for item in payload]
        else:
            dumped = payload.model_dump(exclude_none=True)
        logger.info(f"--- [Dry Run] {label} API Result --- {dumped}")
