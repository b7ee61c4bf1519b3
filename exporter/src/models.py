"""
Value types shared across the exporter.

- :class:`Identity` and :class:`Credential` are plain frozen dataclasses.
  A ``Credential`` refuses to exist half-populated: both the bearer token and
  the device session id must be non-empty.
- The device record shapes are frozen Pydantic models. Parsing a device
  response into one of them is the shape check: a missing or mistyped field
  raises ``pydantic.ValidationError``. Extra fields are ignored.
- :class:`TelemetrySnapshot` bundles the three records of one collection
  cycle and is never mutated after construction.

CHANGELOG:
- 2026-10-02: Initial creation (STORY-003)
- 2026-10-06: Add acquired_at to Credential for health reporting (STORY-011)

TODO:
- None
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


@dataclass(frozen=True)
class Identity:
    """Account and device identity, fixed for the process lifetime.

    Attributes:
        username: Enlighten account username (email address).
        password: Enlighten account password.
        serial_number: Envoy serial number; the token audience.
        host: Envoy address on the local network (``host`` or ``host:port``).
    """

    username: str
    password: str = field(repr=False)
    serial_number: str
    host: str


@dataclass(frozen=True)
class Credential:
    """Bearer token plus the device-local session cookie it was exchanged for.

    The device checks both on every request, so neither is usable alone.

    Raises:
        ValueError: If either part is empty.
    """

    auth_token: str = field(repr=False)
    session_id: str = field(repr=False)
    acquired_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    def __post_init__(self) -> None:
        if not self.auth_token:
            raise ValueError("Credential requires a non-empty auth_token")
        if not self.session_id:
            raise ValueError("Credential requires a non-empty session_id")


class _DeviceRecord(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class ProductionRecord(_DeviceRecord):
    """``GET /api/v1/production``."""

    watt_hours_today: int = Field(alias="wattHoursToday")
    watt_hours_lifetime: int = Field(alias="wattHoursLifetime")
    watts_now: int = Field(alias="wattsNow")


class InverterRecord(_DeviceRecord):
    """One element of ``GET /api/v1/production/inverters``."""

    serial_number: str = Field(alias="serialNumber")
    last_report_watts: int = Field(alias="lastReportWatts")
    max_report_watts: int = Field(alias="maxReportWatts")


class NetworkStatus(_DeviceRecord):
    web_comm: bool


class HomeStatus(_DeviceRecord):
    """``GET /home.json``, reduced to the fields that are exported.

    ``db_percent_full`` is kept as the raw string the device sends (it may
    carry padding); it is parsed when converted to a gauge.
    """

    db_size: int
    db_percent_full: str
    network: NetworkStatus


InverterList = TypeAdapter(list[InverterRecord])


@dataclass(frozen=True)
class TelemetrySnapshot:
    """One complete, internally consistent set of device records.

    Attributes:
        production: Site production totals.
        inverters: Per-inverter records in device response order.
        home: Gateway status.
    """

    production: ProductionRecord
    inverters: tuple[InverterRecord, ...]
    home: HomeStatus
