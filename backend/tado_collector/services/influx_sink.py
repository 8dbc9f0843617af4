"""
InfluxDB Sink
=============

Writes Measurements to InfluxDB 2.x.

TYPES:
    Tags are always strings. Fields are typed one by one:
    - bool  -> boolean field
    - int/float -> float field (so a value that is sometimes 20 and
      sometimes 20.5 never causes a field type conflict)
    - anything else -> string field

FAILURES:
    A failed write is logged and swallowed. Losing one point is better than
    breaking the poll cycle; the next due cycle writes fresh data anyway.

DRY RUN:
    With dry_run=True nothing is sent to InfluxDB. The would-be write is
    logged instead, and check_health() always says healthy.
"""

import asyncio
import logging
from datetime import datetime
from typing import Mapping, Optional

from influxdb_client import InfluxDBClient, Point
from influxdb_client.client.write_api import SYNCHRONOUS

from tado_collector.models import FieldValue, Measurement
from tado_collector.services.errors import SinkWriteError

logger = logging.getLogger(__name__)


def build_point(
    measurement: str,
    tags: Mapping[str, object],
    fields: Mapping[str, FieldValue],
    timestamp: Optional[datetime] = None,
) -> Point:
    """Build an InfluxDB Point with per-field typing."""
    if not fields:
        raise SinkWriteError(f"No fields to write for {measurement}")

    point = Point(measurement)
    for key, value in tags.items():
        point.tag(key, str(value))

    for key, value in fields.items():
        if isinstance(value, bool):
            point.field(key, value)
        elif isinstance(value, (int, float)):
            point.field(key, float(value))
        else:
            point.field(key, str(value))

    if timestamp is not None:
        point.time(timestamp)
    return point


class InfluxSink:
    """
    The write side of the collector.

    HOW TO USE:
    ----------
    sink = InfluxSink(url, token, org, bucket, dry_run=False)
    await sink.write("weather", {"homeId": "1"}, {"outsideTemperature": 12.5})
    """

    def __init__(
        self,
        url: str,
        token: str,
        org: str,
        bucket: str,
        dry_run: bool = False,
        client: Optional[InfluxDBClient] = None,
    ):
        self.url = url
        self.org = org
        self.bucket = bucket
        self.dry_run = dry_run

        self.client = None
        self.write_api = None

        if dry_run:
            logger.info("InfluxDB sink in dry-run mode, no data will be written")
            return

        try:
            self.client = client or InfluxDBClient(url=url, token=token, org=org)
            self.write_api = self.client.write_api(write_options=SYNCHRONOUS)
            logger.info(f"InfluxDB sink initialized for {url}, org: {org}, bucket: {bucket}")
        except Exception as e:
            logger.error(f"Error initializing InfluxDB client: {e}", exc_info=True)
            self.client = None
            self.write_api = None

    async def write(
        self,
        measurement: str,
        tags: Mapping[str, object],
        fields: Mapping[str, FieldValue],
        timestamp: Optional[datetime] = None,
    ) -> bool:
        """
        Write one point.

        Returns:
            True if the point was written (or would have been, in dry-run)
        """
        if not fields:
            logger.error(f"Refusing to write {measurement} without fields")
            return False

        if self.dry_run:
            logger.info(
                f"[DRY RUN] Would write to InfluxDB: {measurement} "
                f"tags={dict(tags)} fields={dict(fields)} timestamp={timestamp}"
            )
            return True

        if self.write_api is None:
            logger.error("InfluxDB Write API not initialized. Cannot write data.")
            return False

        try:
            point = build_point(measurement, tags, fields, timestamp)
            await asyncio.to_thread(
                self.write_api.write, bucket=self.bucket, org=self.org, record=point
            )
            logger.debug(f"Written {measurement} to InfluxDB")
            return True
        except Exception as e:
            logger.error(f"Error writing to InfluxDB ({measurement}): {e}")
            return False

    async def write_measurement(self, measurement: Measurement) -> bool:
        return await self.write(
            measurement.measurement,
            measurement.tags,
            measurement.fields,
            measurement.timestamp,
        )

    async def check_health(self) -> bool:
        """Is InfluxDB reachable? Always True in dry-run."""
        if self.dry_run:
            return True
        if self.client is None:
            return False
        try:
            return bool(await asyncio.to_thread(self.client.ping))
        except Exception as e:
            logger.warning(f"InfluxDB health check failed: {e}")
            return False

    def close(self):
        if self.client is not None:
            self.client.close()
