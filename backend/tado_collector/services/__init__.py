"""
Services Package
================

These are the "workers" that do the actual work.

- TokenStore: Keeps the OAuth token set on disk
- TadoSession: Device-flow login and refresh-on-401
- TadoClient: Reads profile, weather, rooms and heat pump from tado
- IntervalScheduler: Decides which category is due
- InfluxSink: Writes measurements to InfluxDB
- PollOrchestrator: The boss that runs each polling cycle
"""

from .token_store import TokenStore
from .tado_auth import TadoSession
from .tado_client import TadoClient
from .interval_scheduler import IntervalScheduler
from .influx_sink import InfluxSink
from .poller import PollOrchestrator, RunState

__all__ = [
    "TokenStore",
    "TadoSession",
    "TadoClient",
    "IntervalScheduler",
    "InfluxSink",
    "PollOrchestrator",
    "RunState",
]
