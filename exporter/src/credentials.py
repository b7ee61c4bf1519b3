"""
Credential acquisition: Enlighten login -> Entrez token -> Envoy session.

The exchange runs four strictly sequential steps, each depending on the
previous one's output:

1. ``POST`` the account username/password as a form to the Enlighten login
   endpoint and read ``session_id`` from the JSON response.
2. ``POST`` ``{session_id, serial_num, username}`` as JSON to the Entrez
   token endpoint. The raw response body is the token.
3. Validate the token claims (:func:`exporter.src.claims.validate_token`).
4. Present the token to ``https://{host}/auth/check_jwt`` and read the
   ``sessionId`` cookie the Envoy sets.

Any failure raises :class:`~exporter.src.errors.AuthError` and nothing is
returned, so a caller can never observe a half-built credential.

TLS: the cloud client always verifies certificates. The device client does
not, because the Envoy serves a self-signed certificate on the LAN. The
relaxed setting applies to the device client only.

CHANGELOG:
- 2026-10-03: Initial creation (STORY-006)
- 2026-10-07: Treat non-2xx from check_jwt as an invalid token (STORY-006)

TODO:
- None
"""

import hashlib
import logging

import httpx

from exporter.src.claims import token_expiry, validate_token
from exporter.src.config import DEFAULT_LOGIN_URL, DEFAULT_TOKEN_URL
from exporter.src.errors import AuthError, AuthFailure
from exporter.src.models import Credential, Identity

logger = logging.getLogger(__name__)

SESSION_COOKIE = "sessionId"

_DEFAULT_TIMEOUT: float = 10.0


def masked(value: str | None) -> str:
    """Return a short non-reversible fingerprint of a secret for logs."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


def build_device_client(timeout: float = _DEFAULT_TIMEOUT) -> httpx.Client:
    """Build an HTTP client for the Envoy's self-signed HTTPS interface."""
    return httpx.Client(verify=False, timeout=timeout)


class CredentialAcquirer:
    """Runs the login/token/check_jwt exchange for one identity.

    Args:
        identity: Account and device identity.
        login_url: Enlighten login endpoint.
        token_url: Entrez token endpoint.
        timeout: Timeout in seconds for every request.
        cloud_client: Optional pre-built client for the cloud calls.
        device_client: Optional pre-built client for the Envoy call.

    Clients passed in are owned by the caller; clients created here are
    closed by :meth:`close`.
    """

    def __init__(
        self,
        identity: Identity,
        *,
        login_url: str = DEFAULT_LOGIN_URL,
        token_url: str = DEFAULT_TOKEN_URL,
        timeout: float = _DEFAULT_TIMEOUT,
        cloud_client: httpx.Client | None = None,
        device_client: httpx.Client | None = None,
    ) -> None:
        self._identity = identity
        self._login_url = login_url
        self._token_url = token_url
        self._check_jwt_url = f"https://{identity.host}/auth/check_jwt"

        self._owned: list[httpx.Client] = []
        if cloud_client is None:
            cloud_client = httpx.Client(verify=True, timeout=timeout)
            self._owned.append(cloud_client)
        if device_client is None:
            device_client = build_device_client(timeout)
            self._owned.append(device_client)
        self._cloud = cloud_client
        self._device = device_client

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def acquire(self) -> Credential:
        """Run the full exchange.

        Returns:
            Credential: Validated token plus Envoy session id.

        Raises:
            AuthError: On the first failing step.
        """
        identity = self._identity
        cloud_session = self._login()
        token = self._issue_token(cloud_session)

        if not validate_token(token, identity.serial_number, identity.username):
            raise AuthError(
                AuthFailure.INVALID_TOKEN,
                "Token claims did not validate for serial "
                f"{identity.serial_number} and user {identity.username}",
            )

        session_id = self._confirm_with_device(token)
        expiry = token_expiry(token)
        logger.info(
            "Acquired Envoy credential (token %s, expires %s)",
            masked(token),
            expiry.isoformat() if expiry else "unknown",
        )
        return Credential(auth_token=token, session_id=session_id)

    def close(self) -> None:
        """Close the HTTP clients created by this acquirer."""
        for client in self._owned:
            client.close()
        self._owned.clear()

    # ------------------------------------------------------------------
    # Exchange steps
    # ------------------------------------------------------------------

    def _login(self) -> str:
        data = {
            "user[email]": self._identity.username,
            "user[password]": self._identity.password,
        }
        try:
            response = self._cloud.post(self._login_url, data=data)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise AuthError(
                AuthFailure.INVALID_CREDENTIALS,
                f"Login rejected with HTTP {exc.response.status_code}",
            ) from exc
        except httpx.TransportError as exc:
            raise AuthError(
                AuthFailure.INVALID_CREDENTIALS, f"Login request failed: {exc}"
            ) from exc
        except ValueError as exc:
            raise AuthError(
                AuthFailure.INVALID_CREDENTIALS, "Login response was not valid JSON"
            ) from exc

        session_id = body.get("session_id") if isinstance(body, dict) else None
        if not isinstance(session_id, str) or not session_id:
            raise AuthError(
                AuthFailure.INVALID_CREDENTIALS,
                "Login response did not contain a session_id",
            )
        logger.debug("Enlighten login succeeded")
        return session_id

    def _issue_token(self, cloud_session: str) -> str:
        payload = {
            "session_id": cloud_session,
            "serial_num": self._identity.serial_number,
            "username": self._identity.username,
        }
        try:
            response = self._cloud.post(self._token_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise AuthError(
                AuthFailure.TOKEN_ISSUANCE_FAILED,
                f"Token request rejected with HTTP {exc.response.status_code}, "
                "serial number might be incorrect",
            ) from exc
        except httpx.TransportError as exc:
            raise AuthError(
                AuthFailure.TOKEN_ISSUANCE_FAILED, f"Token request failed: {exc}"
            ) from exc

        token = response.text.strip()
        if not token:
            raise AuthError(
                AuthFailure.TOKEN_ISSUANCE_FAILED, "Token endpoint returned an empty body"
            )
        return token

    def _confirm_with_device(self, token: str) -> str:
        headers = {"Authorization": f"Bearer {token}"}
        try:
            response = self._device.get(self._check_jwt_url, headers=headers)
        except httpx.TransportError as exc:
            raise AuthError(
                AuthFailure.DEVICE_UNREACHABLE,
                f"Request to {self._check_jwt_url} failed: {exc}",
            ) from exc

        if not response.is_success:
            raise AuthError(
                AuthFailure.INVALID_TOKEN,
                f"Envoy rejected the token with HTTP {response.status_code}",
            )

        session_id = response.cookies.get(SESSION_COOKIE)
        if not session_id:
            raise AuthError(
                AuthFailure.LOCAL_SESSION_NOT_FOUND,
                f"Envoy response carried no {SESSION_COOKIE} cookie",
            )
        return session_id
