"""
Exporter entry point.

Startup order:
1. Configure structured JSON logging.
2. Load configuration from ``EEPE_*`` environment variables.
3. Acquire the first credential synchronously and start the refresh thread.
4. Serve ``/metrics`` with uvicorn until interrupted.

Configuration errors and a failed first acquisition are unrecoverable: a
diagnostic is printed to stderr and the process exits with status 1.
Everything after startup (refresh failures, failed scrapes) is logged and
survived.

CHANGELOG:
- 2026-10-05: Initial creation (STORY-010)

TODO:
- None
"""

import logging
import sys
from typing import NoReturn

import uvicorn

from exporter.src.app import create_app
from exporter.src.collector import TelemetryCollector
from exporter.src.config import ExporterSettings, load_settings
from exporter.src.credentials import CredentialAcquirer
from exporter.src.errors import AuthError, ConfigError
from exporter.src.logging_config import setup_logging
from exporter.src.scheduler import CredentialScheduler

logger = logging.getLogger(__name__)


def _fail(message: str) -> NoReturn:
    print(f"envoy-exporter: {message}", file=sys.stderr)
    sys.exit(1)


def log_config_summary(settings: ExporterSettings) -> None:
    """Log a config summary at startup, excluding the password."""
    logger.info(
        "Envoy exporter starting with config: "
        "username=%s, serialnumber=%s, host=%s, listen=%s:%s, "
        "request_timeout_s=%s, refresh_interval_days=%s",
        settings.username,
        settings.serialnumber,
        settings.host,
        settings.listen_host,
        settings.listen_port,
        settings.request_timeout_s,
        settings.refresh_interval_days,
    )


def main() -> None:
    """Exporter entry point."""
    setup_logging()

    try:
        settings = load_settings()
    except ConfigError as exc:
        logger.critical("Invalid configuration: %s", exc)
        _fail(f"invalid configuration: {exc}")

    setup_logging(settings.log_level)
    log_config_summary(settings)

    acquirer = CredentialAcquirer(
        settings.identity(),
        login_url=settings.login_url,
        token_url=settings.token_url,
        timeout=settings.request_timeout_s,
    )
    scheduler = CredentialScheduler(
        acquirer, refresh_interval_s=settings.refresh_interval_s
    )

    try:
        scheduler.start()
    except AuthError as exc:
        acquirer.close()
        logger.critical("Initial credential acquisition failed: %s", exc)
        _fail(f"could not acquire Envoy credential: {exc}")

    collector = TelemetryCollector(settings.host, timeout=settings.request_timeout_s)
    app = create_app(scheduler, collector)

    try:
        uvicorn.run(
            app,
            host=settings.listen_host,
            port=settings.listen_port,
            log_config=None,
        )
    finally:
        logger.info("Shutting down")
        scheduler.stop()
        collector.close()
        acquirer.close()
        logger.info("Envoy exporter shut down cleanly")


if __name__ == "__main__":
    main()
