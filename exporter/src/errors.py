"""
Exception hierarchy for the Envoy exporter.

Three families of failure, each handled at a different seam:

- :class:`ConfigError` -- missing or invalid environment configuration.
  Fatal at startup.
- :class:`AuthError` -- any step of the credential exchange failed. Fatal on
  the first acquisition, logged and survived on a scheduled refresh.
- :class:`CollectionError` -- one of the device telemetry fetches failed.
  Fails the current scrape only.

CHANGELOG:
- 2026-10-02: Initial creation (STORY-002)

TODO:
- None
"""

from enum import Enum


class ExporterError(Exception):
    """Base class for all exporter errors."""


class ConfigError(ExporterError):
    """Required configuration is missing or invalid."""


class AuthFailure(str, Enum):
    """Which step of the credential exchange failed."""

    INVALID_CREDENTIALS = "invalid_credentials"
    TOKEN_ISSUANCE_FAILED = "token_issuance_failed"
    INVALID_TOKEN = "invalid_token"
    LOCAL_SESSION_NOT_FOUND = "local_session_not_found"
    DEVICE_UNREACHABLE = "device_unreachable"


class AuthError(ExporterError):
    """Credential acquisition failed.

    Args:
        reason: The failing step.
        message: Human-readable diagnostic.
    """

    def __init__(self, reason: AuthFailure, message: str) -> None:
        super().__init__(f"{reason.value}: {message}")
        self.reason = reason
        self.message = message


class CollectionError(ExporterError):
    """A device telemetry request failed or returned an unexpected shape.

    Args:
        endpoint: Device path of the failing request (e.g. ``/home.json``).
        message: Human-readable diagnostic.
    """

    def __init__(self, endpoint: str, message: str) -> None:
        super().__init__(f"{endpoint}: {message}")
        self.endpoint = endpoint
        self.message = message
