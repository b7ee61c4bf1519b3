"""
End-to-end tests: real acquirer, scheduler, collector and app wired together
against mock Enlighten, Entrez and Envoy endpoints (STORY-013).

Tests verify:
- Login -> token -> check_jwt -> three telemetry calls produce the expected
  gauge values on GET /metrics.
- A token with only 10 days left fails the first acquisition with
  INVALID_TOKEN, and during a scheduled refresh is logged while the
  previous credential keeps serving scrapes.

CHANGELOG:
- 2026-10-08: Initial creation (STORY-013)

TODO:
- None
"""

import httpx
import pytest
from fastapi.testclient import TestClient
from prometheus_client.parser import text_string_to_metric_families

from exporter.src import health
from exporter.src.app import create_app
from exporter.src.collector import TelemetryCollector
from exporter.src.config import DEFAULT_LOGIN_URL, DEFAULT_TOKEN_URL
from exporter.src.credentials import CredentialAcquirer
from exporter.src.errors import AuthError, AuthFailure
from exporter.src.scheduler import CredentialScheduler

from conftest import HOST


class FakeEnphase:
    """Enlighten, Entrez and the Envoy behind one mock transport."""

    def __init__(self, token: str) -> None:
        self.token = token
        self.session_cookie = "xyz"
        self.calls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append(request.url.path)
        if url == DEFAULT_LOGIN_URL:
            return httpx.Response(200, json={"session_id": "abc"})
        if url == DEFAULT_TOKEN_URL:
            return httpx.Response(200, text=self.token)
        if request.url.host != HOST:
            return httpx.Response(404)

        if request.url.path == "/auth/check_jwt":
            return httpx.Response(
                200,
                headers={"Set-Cookie": f"sessionId={self.session_cookie}; Path=/"},
            )

        if request.headers.get("cookie") != f"sessionId={self.session_cookie}":
            return httpx.Response(401)
        if request.url.path == "/api/v1/production":
            return httpx.Response(
                200, json={"wattHoursToday": 100, "wattHoursLifetime": 5000, "wattsNow": 250}
            )
        if request.url.path == "/api/v1/production/inverters":
            return httpx.Response(
                200,
                json=[{"serialNumber": "INV1", "lastReportWatts": 30, "maxReportWatts": 45}],
            )
        if request.url.path == "/home.json":
            return httpx.Response(
                200,
                json={"db_size": 512, "db_percent_full": "10.0", "network": {"web_comm": True}},
            )
        return httpx.Response(404)


@pytest.fixture(autouse=True)
def _reset_health_state():
    health.reset()
    yield
    health.reset()


@pytest.fixture()
def enphase(make_token) -> FakeEnphase:
    return FakeEnphase(make_token(serial="SN123", username="alice", days_left=60))


@pytest.fixture()
def wiring(identity, enphase: FakeEnphase):
    transport = httpx.MockTransport(enphase)
    acquirer = CredentialAcquirer(
        identity,
        cloud_client=httpx.Client(transport=transport),
        device_client=httpx.Client(transport=transport),
    )
    scheduler = CredentialScheduler(acquirer, refresh_interval_s=3600)
    collector = TelemetryCollector(HOST, client=httpx.Client(transport=transport))
    yield scheduler, collector
    scheduler.stop()


def _scrape(client: TestClient) -> dict[tuple, float]:
    response = client.get("/metrics")
    assert response.status_code == 200
    values = {}
    for family in text_string_to_metric_families(response.text):
        for sample in family.samples:
            values[(sample.name, tuple(sorted(sample.labels.items())))] = sample.value
    return values


class TestSuccessfulScrape:
    """The documented happy-path scenario."""

    def test_scrape_output(self, wiring, enphase: FakeEnphase) -> None:
        scheduler, collector = wiring
        scheduler.start()
        client = TestClient(create_app(scheduler, collector))

        values = _scrape(client)

        assert values[("envoy_system_connected", ())] == 1
        assert values[("envoy_database_size", ())] == 512
        assert values[("envoy_database_percent", ())] == 10.0
        assert values[("envoy_production_watthours_today", ())] == 100
        assert values[("envoy_production_watthours_lifetime", ())] == 5000
        assert values[("envoy_production_watts_now", ())] == 250
        inv1 = (("serialNumber", "INV1"),)
        assert values[("envoy_production_inverter_last_reported_watts", inv1)] == 30
        assert values[("envoy_production_inverter_max_reported_watts", inv1)] == 45

    def test_credential_exchanged_once_for_many_scrapes(
        self, wiring, enphase: FakeEnphase
    ) -> None:
        scheduler, collector = wiring
        scheduler.start()
        client = TestClient(create_app(scheduler, collector))

        _scrape(client)
        _scrape(client)

        assert enphase.calls.count("/auth/check_jwt") == 1
        assert enphase.calls.count("/home.json") == 2


class TestExpiringToken:
    """A token with 10 days left is never accepted."""

    def test_startup_fails(self, wiring, enphase: FakeEnphase, make_token) -> None:
        scheduler, _collector = wiring
        enphase.token = make_token(days_left=10)

        with pytest.raises(AuthError) as exc_info:
            scheduler.start()

        assert exc_info.value.reason is AuthFailure.INVALID_TOKEN
        assert "/auth/check_jwt" not in enphase.calls

    def test_refresh_keeps_previous_credential(
        self, wiring, enphase: FakeEnphase, make_token, caplog
    ) -> None:
        scheduler, collector = wiring
        original = scheduler.start()
        client = TestClient(create_app(scheduler, collector))

        enphase.token = make_token(days_left=10)
        assert scheduler.refresh_once() is False

        assert scheduler.current() is original
        assert "Credential refresh failed" in caplog.text
        assert _scrape(client)[("envoy_production_watts_now", ())] == 250
        assert client.get("/health").json()["last_refresh_ok"] is False
