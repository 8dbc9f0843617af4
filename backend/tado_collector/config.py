"""
Configuration
=============

Application configuration loaded from environment variables (and a .env
file in the working directory, if there is one).

Environment Variables:
    TADO_CLIENT_ID: OAuth client id of the tado app (required)
    INFLUX_URL: InfluxDB base URL (required)
    INFLUX_TOKEN: InfluxDB API token (required)
    INFLUX_ORG: InfluxDB organisation (required)
    INFLUX_BUCKET: InfluxDB bucket (required)
    TADO_POLL_INTERVAL_WEATHER: Weather interval in ms (default: 3600000)
    TADO_POLL_INTERVAL_ROOMS: Rooms interval in ms (default: 600000)
    TADO_POLL_INTERVAL_HEATPUMP: Heat pump interval in ms (default: 600000)
    TADO_LOGIN_PORT: HTTP listen port (default: 3000)
    TADO_DRY_RUN: "true" to log instead of writing to InfluxDB
    TADO_TOKEN_FILE: Where the OAuth token set is kept (default: data/token.json)
    TADO_REQUEST_TIMEOUT: Per-call timeout for tado requests, seconds (default: 30)
    LOG_LEVEL: Logging level (default: INFO)
"""

import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from tado_collector.models import PollCategory
from tado_collector.services.errors import ConfigError
from tado_collector.utils.validation import (
    parse_bool,
    parse_log_level,
    parse_positive_float,
    parse_positive_int,
)


DEFAULT_INTERVALS_MS = {
    PollCategory.WEATHER: 3_600_000,   # 1 hour
    PollCategory.ROOMS: 600_000,       # 10 mins
    PollCategory.HEAT_PUMP: 600_000,   # 10 mins
}

INTERVAL_ENV = {
    PollCategory.WEATHER: "TADO_POLL_INTERVAL_WEATHER",
    PollCategory.ROOMS: "TADO_POLL_INTERVAL_ROOMS",
    PollCategory.HEAT_PUMP: "TADO_POLL_INTERVAL_HEATPUMP",
}

REQUIRED_ENV = [
    "TADO_CLIENT_ID",
    "INFLUX_URL",
    "INFLUX_TOKEN",
    "INFLUX_ORG",
    "INFLUX_BUCKET",
]


class Settings(BaseModel):
    """Everything the collector needs to start."""

    client_id: str
    influx_url: str
    influx_token: str
    influx_org: str
    influx_bucket: str
    intervals: dict[PollCategory, int] = Field(
        default_factory=lambda: dict(DEFAULT_INTERVALS_MS)
    )
    port: int = 3000
    dry_run: bool = False
    token_file: Path = Path("data") / "token.json"
    request_timeout: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from the environment.

        Loads .env first when reading the real process environment. Every
        missing required variable is reported in one ConfigError.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        missing = [key for key in REQUIRED_ENV if not environ.get(key)]
        if missing:
            raise ConfigError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

        intervals = {
            category: parse_positive_int(environ.get(env_name), DEFAULT_INTERVALS_MS[category])
            for category, env_name in INTERVAL_ENV.items()
        }

        return cls(
            client_id=environ["TADO_CLIENT_ID"],
            influx_url=environ["INFLUX_URL"],
            influx_token=environ["INFLUX_TOKEN"],
            influx_org=environ["INFLUX_ORG"],
            influx_bucket=environ["INFLUX_BUCKET"],
            intervals=intervals,
            port=parse_positive_int(environ.get("TADO_LOGIN_PORT"), 3000),
            dry_run=parse_bool(environ.get("TADO_DRY_RUN")),
            token_file=Path(environ.get("TADO_TOKEN_FILE") or Path("data") / "token.json"),
            request_timeout=parse_positive_float(environ.get("TADO_REQUEST_TIMEOUT"), 30.0),
            log_level=parse_log_level(environ.get("LOG_LEVEL")),
        )
