"""
Claim validation for Entrez-issued Envoy tokens.

Pure function, no I/O. A token is accepted only when:

- the JOSE header names an ECDSA algorithm (``ES256``/``ES384``/``ES512``);
  ``none``, HMAC and RSA are rejected;
- ``iss`` is ``Entrez``;
- ``aud`` is the Envoy serial number;
- ``username`` matches the configured account exactly;
- ``enphaseUser`` is ``owner``;
- ``exp`` is more than 30 days in the future.

The signature itself is NOT verified. The Entrez signing key belongs to
Enphase and is not distributed, so the token is trusted on first use once
its algorithm family and claims check out. The Envoy re-validates the token
when it is presented to ``/auth/check_jwt``. This is a known limitation.

CHANGELOG:
- 2026-10-03: Initial creation (STORY-005)
- 2026-10-19: Treat non-finite or out-of-range exp as missing (STORY-005)

TODO:
- None
"""

import logging
import math
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

logger = logging.getLogger(__name__)

EXPECTED_ISSUER = "Entrez"
OWNER_ROLE = "owner"
ALLOWED_ALGORITHMS: frozenset[str] = frozenset({"ES256", "ES384", "ES512"})

# Minimum remaining lifetime for a token to be accepted.
VALIDITY_MARGIN = timedelta(days=30)


def _unverified_claims(token: str) -> tuple[dict[str, Any], dict[str, Any]] | None:
    """Decode header and payload without checking the signature.

    Returns:
        ``(header, claims)``, or ``None`` if the token is not a decodable JWT.
    """
    try:
        header = jwt.get_unverified_header(token)
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        logger.warning("Token could not be decoded: %s", exc)
        return None
    return header, claims


def _audience_matches(aud: object, expected: str) -> bool:
    if isinstance(aud, str):
        return aud == expected
    if isinstance(aud, list):
        return expected in aud
    return False


def token_expiry(token: str) -> datetime | None:
    """Return the ``exp`` claim as an aware UTC datetime, if present."""
    decoded = _unverified_claims(token)
    if decoded is None:
        return None
    exp = decoded[1].get("exp")
    if not isinstance(exp, (int, float)) or isinstance(exp, bool):
        return None
    if not math.isfinite(exp):
        return None
    try:
        return datetime.fromtimestamp(exp, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None


def validate_token(
    token: str,
    expected_audience: str,
    expected_username: str,
    *,
    now: datetime | None = None,
) -> bool:
    """Check an Entrez token against the configured identity.

    Args:
        token: Encoded JWT as returned by the token endpoint.
        expected_audience: Envoy serial number.
        expected_username: Enlighten account username.
        now: Reference time; defaults to the current UTC time.

    Returns:
        ``True`` if every check passes, ``False`` otherwise. Never raises.
    """
    decoded = _unverified_claims(token)
    if decoded is None:
        return False
    header, claims = decoded

    alg = header.get("alg")
    if alg not in ALLOWED_ALGORITHMS:
        logger.warning("Token rejected: signing algorithm %r is not ECDSA", alg)
        return False

    checks = {
        "iss": claims.get("iss") == EXPECTED_ISSUER,
        "aud": _audience_matches(claims.get("aud"), expected_audience),
        "username": claims.get("username") == expected_username,
        "enphaseUser": claims.get("enphaseUser") == OWNER_ROLE,
    }
    failed = [name for name, ok in checks.items() if not ok]
    if failed:
        logger.warning("Token rejected: claim(s) %s do not match", ", ".join(failed))
        return False

    expiry = token_expiry(token)
    if expiry is None:
        logger.warning("Token rejected: missing, non-numeric or out-of-range exp claim")
        return False

    now = now or datetime.now(tz=UTC)
    if expiry - VALIDITY_MARGIN <= now:
        logger.warning(
            "Token rejected: expires %s, less than %d days from now",
            expiry.isoformat(),
            VALIDITY_MARGIN.days,
        )
        return False

    return True
