"""
Credential refresh scheduler.

Owns the single shared :class:`~exporter.src.models.Credential`:

- :meth:`CredentialScheduler.start` performs the first acquisition
  synchronously and lets any ``AuthError`` propagate, since the exporter has
  nothing to serve without a credential. It then starts a daemon refresh
  thread.
- The refresh thread re-runs the acquisition every ``refresh_interval_s``.
  A failed refresh is logged and the previous credential stays in place;
  the 30-day validity margin enforced at acquisition keeps it usable.
- :meth:`CredentialScheduler.current` hands out the current credential.

The credential is immutable and replaced as a whole under a lock, so a
reader sees either the old value or the new one, never a mix.

CHANGELOG:
- 2026-10-04: Initial creation (STORY-007)
- 2026-10-06: Track refresh outcome for the health endpoint (STORY-011)

TODO:
- None
"""

import logging
import threading
from datetime import datetime
from typing import Protocol

from exporter.src.errors import AuthError
from exporter.src.models import Credential

logger = logging.getLogger(__name__)

# 90 days.
DEFAULT_REFRESH_INTERVAL_S: float = 90 * 24 * 60 * 60


class Acquirer(Protocol):
    def acquire(self) -> Credential: ...


class CredentialScheduler:
    """Single-writer, multi-reader holder of the current credential.

    Args:
        acquirer: Object whose ``acquire()`` returns a fresh credential or
            raises ``AuthError``.
        refresh_interval_s: Seconds between scheduled refreshes.
    """

    def __init__(
        self,
        acquirer: Acquirer,
        *,
        refresh_interval_s: float = DEFAULT_REFRESH_INTERVAL_S,
    ) -> None:
        self._acquirer = acquirer
        self._refresh_interval_s = refresh_interval_s

        self._lock = threading.Lock()
        self._credential: Credential | None = None
        self._last_refresh_ok: bool | None = None
        self._last_refresh_error: str | None = None

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> Credential:
        """Acquire the first credential and start the refresh thread.

        Returns:
            Credential: The initial credential.

        Raises:
            AuthError: If the initial acquisition fails. No thread is started.
        """
        credential = self._acquirer.acquire()
        self._publish(credential)
        logger.info(
            "Initial credential acquired; next refresh in %.0f days",
            self._refresh_interval_s / 86400,
        )

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._refresh_loop,
            daemon=True,
            name="credential-refresh",
        )
        self._thread.start()
        return credential

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the refresh thread to exit and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh_once(self) -> bool:
        """Run one acquisition and swap in the result on success.

        Returns:
            ``True`` if the credential was replaced, ``False`` if the refresh
            failed and the previous credential was kept.
        """
        try:
            credential = self._acquirer.acquire()
        except AuthError as exc:
            self._record_failure(str(exc))
            logger.error(
                "Credential refresh failed (%s); keeping previous credential",
                exc,
            )
            return False
        except Exception as exc:
            self._record_failure(repr(exc))
            logger.exception("Unexpected error during credential refresh")
            return False

        self._publish(credential)
        logger.info("Credential refreshed")
        return True

    def _refresh_loop(self) -> None:
        while not self._stop_event.wait(timeout=self._refresh_interval_s):
            self.refresh_once()
        logger.info("Credential refresh thread stopped")

    # ------------------------------------------------------------------
    # Shared state
    # ------------------------------------------------------------------

    def _publish(self, credential: Credential) -> None:
        with self._lock:
            self._credential = credential
            self._last_refresh_ok = True
            self._last_refresh_error = None

    def _record_failure(self, message: str) -> None:
        with self._lock:
            self._last_refresh_ok = False
            self._last_refresh_error = message

    def current(self) -> Credential:
        """Return the latest successfully acquired credential.

        Raises:
            RuntimeError: If no credential has been acquired yet.
        """
        with self._lock:
            credential = self._credential
        if credential is None:
            raise RuntimeError("No credential acquired yet")
        return credential

    @property
    def last_acquired_at(self) -> datetime | None:
        with self._lock:
            return self._credential.acquired_at if self._credential else None

    @property
    def last_refresh_ok(self) -> bool | None:
        """Outcome of the most recent acquisition (``None`` before any)."""
        with self._lock:
            return self._last_refresh_ok

    @property
    def last_refresh_error(self) -> str | None:
        with self._lock:
            return self._last_refresh_error

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
