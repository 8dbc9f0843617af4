"""
Collector Errors
================

Every failure the collector knows how to handle has its own type here.

WHO CATCHES WHAT:
----------------
- AuthError: login routes turn it into HTTP 500; the poller records it as a
  failed cycle.
- FetchError: caught per category by the poller; never stops a cycle.
- CycleFatalError: caught by the poller at cycle level; becomes an "errors"
  measurement in InfluxDB.
- SinkWriteError: caught inside the sink; metric loss is logged, never raised.
- ConfigError: not caught; missing configuration stops startup.
"""


class TadoCollectorError(Exception):
    """Base class for all collector errors."""


class AuthError(TadoCollectorError):
    """Device flow rejected, refresh failed, or no session held."""


class FetchError(TadoCollectorError):
    """A single vendor call (or its payload) failed."""


class CycleFatalError(TadoCollectorError):
    """A failure outside the per-category boundaries aborted the cycle."""


class SinkWriteError(TadoCollectorError):
    """A point could not be built or written to InfluxDB."""


class ConfigError(TadoCollectorError):
    """Required configuration is missing or invalid."""
