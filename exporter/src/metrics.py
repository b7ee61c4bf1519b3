"""
Prometheus adapter: current credential -> fresh snapshot -> gauges.

:class:`EnvoyMetricsCollector` is a ``prometheus_client`` custom collector.
Every ``collect()`` call performs a full device round-trip; nothing is
cached between scrapes. A :class:`~exporter.src.errors.CollectionError`
propagates to the caller so the scrape fails as a whole rather than
exposing an inconsistent set of gauges.

CHANGELOG:
- 2026-10-05: Initial creation (STORY-009)
- 2026-10-19: Report non-finite db_percent_full as 0 (STORY-009)

TODO:
- None
"""

import logging
import math
from collections.abc import Iterator
from typing import Protocol

from prometheus_client import CollectorRegistry
from prometheus_client.core import GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from exporter.src.models import Credential, TelemetrySnapshot

logger = logging.getLogger(__name__)

INVERTER_LABEL = "serialNumber"

# name -> help text
_GAUGES: dict[str, str] = {
    "envoy_system_connected": "If the system is connected to the cloud",
    "envoy_database_size": "The size of the internal database",
    "envoy_database_percent": "Percentage of the internal database",
    "envoy_production_watthours_today": "Amount of watt-hours produced today",
    "envoy_production_watthours_lifetime": (
        "Amount of watt-hours produced in total lifetime"
    ),
    "envoy_production_watts_now": "Amount of watts currently produced",
}
_INVERTER_GAUGES: dict[str, str] = {
    "envoy_production_inverter_last_reported_watts": (
        "Last reported amount of watts of an inverter"
    ),
    "envoy_production_inverter_max_reported_watts": (
        "Max reported amount of watts of an inverter"
    ),
}


class CredentialSource(Protocol):
    def current(self) -> Credential: ...


class SnapshotSource(Protocol):
    def collect(self, credential: Credential) -> TelemetrySnapshot: ...


def parse_percent(value: str) -> float:
    """Parse the Envoy's padded percentage string (e.g. ``"42.5  "``).

    Returns ``0.0`` if the value is not a finite number, so one odd field
    can not fail a whole scrape.
    """
    try:
        percent = float(value.strip())
    except (AttributeError, ValueError):
        percent = math.nan
    if not math.isfinite(percent):
        logger.warning("Could not parse db_percent_full value %r; using 0", value)
        return 0.0
    return percent


def snapshot_to_metrics(snapshot: TelemetrySnapshot) -> list[Metric]:
    """Convert a snapshot into the fixed set of gauge families."""
    home = snapshot.home
    production = snapshot.production
    values = {
        "envoy_system_connected": 1.0 if home.network.web_comm else 0.0,
        "envoy_database_size": float(home.db_size),
        "envoy_database_percent": parse_percent(home.db_percent_full),
        "envoy_production_watthours_today": float(production.watt_hours_today),
        "envoy_production_watthours_lifetime": float(production.watt_hours_lifetime),
        "envoy_production_watts_now": float(production.watts_now),
    }
    families: list[Metric] = [
        GaugeMetricFamily(name, _GAUGES[name], value=value)
        for name, value in values.items()
    ]

    last = GaugeMetricFamily(
        "envoy_production_inverter_last_reported_watts",
        _INVERTER_GAUGES["envoy_production_inverter_last_reported_watts"],
        labels=[INVERTER_LABEL],
    )
    peak = GaugeMetricFamily(
        "envoy_production_inverter_max_reported_watts",
        _INVERTER_GAUGES["envoy_production_inverter_max_reported_watts"],
        labels=[INVERTER_LABEL],
    )
    for inverter in snapshot.inverters:
        last.add_metric([inverter.serial_number], float(inverter.last_report_watts))
        peak.add_metric([inverter.serial_number], float(inverter.max_report_watts))
    families.extend([last, peak])
    return families


class EnvoyMetricsCollector(Collector):
    """Custom collector that scrapes the Envoy on every ``collect()``.

    Args:
        credentials: Provides the current credential (the scheduler).
        telemetry: Fetches a snapshot with that credential.
    """

    def __init__(self, credentials: CredentialSource, telemetry: SnapshotSource) -> None:
        self._credentials = credentials
        self._telemetry = telemetry

    def describe(self) -> Iterator[Metric]:
        # Defining describe() stops the registry from calling collect() (and
        # hitting the device) at registration time.
        for name, documentation in _GAUGES.items():
            yield GaugeMetricFamily(name, documentation)
        for name, documentation in _INVERTER_GAUGES.items():
            yield GaugeMetricFamily(name, documentation, labels=[INVERTER_LABEL])

    def collect(self) -> Iterator[Metric]:
        credential = self._credentials.current()
        snapshot = self._telemetry.collect(credential)
        yield from snapshot_to_metrics(snapshot)


def build_registry(collector: EnvoyMetricsCollector) -> CollectorRegistry:
    """Register *collector* on a fresh registry without process metrics."""
    registry = CollectorRegistry(auto_describe=True)
    registry.register(collector)
    return registry
