"""
Exporter health reporting: credential age, refresh outcome, last scrape.

Scrape results are tracked as module-level state, updated by the
``/metrics`` route. ``get_health_status()`` combines them with the
scheduler's view of the credential into the dict served on ``/health``.

CHANGELOG:
- 2026-10-06: Initial creation (STORY-011)

TODO:
- None
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

# Module-level state tracking for scrape results.
_lock = threading.Lock()
_last_scrape_ok: bool | None = None
_last_scrape_ts: float | None = None


def record_scrape_success() -> None:
    """Record a successful scrape with the current timestamp."""
    global _last_scrape_ok, _last_scrape_ts  # noqa: PLW0603
    with _lock:
        _last_scrape_ok = True
        _last_scrape_ts = time.monotonic()


def record_scrape_failure() -> None:
    """Record a failed scrape with the current timestamp."""
    global _last_scrape_ok, _last_scrape_ts  # noqa: PLW0603
    with _lock:
        _last_scrape_ok = False
        _last_scrape_ts = time.monotonic()


def get_health_status(scheduler: Any) -> dict[str, Any]:
    """Build a health status dict for the exporter.

    Checks:
    - **credential_acquired_at** / **credential_age_s**: when the current
      credential was obtained (``None`` before the first acquisition).
    - **last_refresh_ok**: outcome of the most recent acquisition attempt.
    - **last_scrape_ok** / **last_scrape_elapsed_s**: outcome and age of the
      most recent scrape (``None`` if none has happened yet).

    ``status`` is ``"degraded"`` when the last refresh or the last scrape
    failed, ``"ok"`` otherwise.

    Args:
        scheduler: The CredentialScheduler (must have ``last_acquired_at``
            and ``last_refresh_ok``).

    Returns:
        Dict with health status fields.
    """
    acquired_at: datetime | None = scheduler.last_acquired_at
    refresh_ok: bool | None = scheduler.last_refresh_ok
    now = datetime.now(tz=UTC)

    with _lock:
        scrape_ok = _last_scrape_ok
        scrape_ts = _last_scrape_ts

    elapsed: float | None = None
    if scrape_ts is not None:
        elapsed = round(time.monotonic() - scrape_ts, 1)

    degraded = refresh_ok is False or scrape_ok is False
    return {
        "status": "degraded" if degraded else "ok",
        "credential_acquired_at": acquired_at.isoformat() if acquired_at else None,
        "credential_age_s": (
            round((now - acquired_at).total_seconds(), 1) if acquired_at else None
        ),
        "last_refresh_ok": refresh_ok,
        "last_scrape_ok": scrape_ok,
        "last_scrape_elapsed_s": elapsed,
        "checked_at": now.isoformat(),
    }


def reset() -> None:
    """Reset module-level state (for testing only)."""
    global _last_scrape_ok, _last_scrape_ts  # noqa: PLW0603
    with _lock:
        _last_scrape_ok = None
        _last_scrape_ts = None
