"""
Shared test fixtures for exporter tests.

Provides environment isolation, a throwaway ECDSA signing key, and a token
factory producing Entrez-shaped tokens.

CHANGELOG:
- 2026-10-02: Initial creation (STORY-004)
- 2026-10-03: Add signing key and token factory (STORY-005)

TODO:
- None
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import ec

from exporter.src.models import Identity

# All ExporterSettings environment variable names, used for cleanup.
_ALL_EXPORTER_ENV_VARS = (
    "EEPE_USERNAME",
    "EEPE_PASSWORD",
    "EEPE_SERIALNUMBER",
    "EEPE_HOST",
    "EEPE_LISTEN_HOST",
    "EEPE_LISTEN_PORT",
    "EEPE_REQUEST_TIMEOUT_S",
    "EEPE_REFRESH_INTERVAL_DAYS",
    "EEPE_LOGIN_URL",
    "EEPE_TOKEN_URL",
    "EEPE_LOG_LEVEL",
)

SERIAL = "SN123"
USERNAME = "alice"
HOST = "192.168.1.50"

TokenFactory = Callable[..., str]


@pytest.fixture(autouse=True)
def _clean_exporter_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all exporter env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_EXPORTER_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_required_only(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set only the required environment variables (no optional ones)."""
    env = {
        "EEPE_USERNAME": "alice@example.com",
        "EEPE_PASSWORD": "hunter2",
        "EEPE_SERIALNUMBER": "122233334444",
        "EEPE_HOST": "192.168.1.50",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def identity() -> Identity:
    """Identity matching the tokens produced by ``make_token``."""
    return Identity(
        username=USERNAME,
        password="s3cret",
        serial_number=SERIAL,
        host=HOST,
    )


@pytest.fixture(scope="session")
def signing_key() -> ec.EllipticCurvePrivateKey:
    """Throwaway P-256 key standing in for the Entrez signing key."""
    return ec.generate_private_key(ec.SECP256R1())


def entrez_claims(
    *,
    serial: str = SERIAL,
    username: str = USERNAME,
    days_left: float = 60,
    now: datetime | None = None,
    **overrides: Any,
) -> dict[str, Any]:
    """Build a claim set shaped like an Entrez owner token."""
    now = now or datetime.now(tz=UTC)
    claims: dict[str, Any] = {
        "aud": serial,
        "iss": "Entrez",
        "enphaseUser": "owner",
        "exp": int((now + timedelta(days=days_left)).timestamp()),
        "iat": int(now.timestamp()),
        "jti": "5c5b4d7a-8d0c-4c4c-9a6e-0f1e2d3c4b5a",
        "username": username,
    }
    claims.update(overrides)
    return claims


@pytest.fixture()
def make_token(signing_key: ec.EllipticCurvePrivateKey) -> TokenFactory:
    """Return a factory for ES256 tokens.

    Keyword arguments are passed to :func:`entrez_claims`; a claim value of
    ``None`` removes that claim.
    """

    def _make(**kwargs: Any) -> str:
        claims = entrez_claims(**kwargs)
        claims = {k: v for k, v in claims.items() if v is not None}
        return jwt.encode(claims, signing_key, algorithm="ES256")

    return _make
