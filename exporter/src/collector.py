"""
Envoy telemetry collector -- one snapshot per call.

Issues three GET requests concurrently against the Envoy local API:

- ``/api/v1/production``
- ``/api/v1/production/inverters``
- ``/home.json``

each carrying the bearer token and the ``sessionId`` cookie. All three are
joined before returning. If any of them fails (transport error or timeout,
non-2xx status, invalid JSON, unexpected shape) the whole collection fails
with :class:`~exporter.src.errors.CollectionError`; there is no partial
snapshot.

CHANGELOG:
- 2026-10-04: Initial creation (STORY-008)

TODO:
- None
"""

import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

import httpx
from pydantic import ValidationError

from exporter.src.credentials import SESSION_COOKIE, build_device_client
from exporter.src.errors import CollectionError
from exporter.src.models import (
    Credential,
    HomeStatus,
    InverterList,
    ProductionRecord,
    TelemetrySnapshot,
)

logger = logging.getLogger(__name__)

PRODUCTION_PATH = "/api/v1/production"
INVERTERS_PATH = "/api/v1/production/inverters"
HOME_PATH = "/home.json"

_DEFAULT_TIMEOUT: float = 10.0


class TelemetryCollector:
    """Fetches production, inverter and status records from one Envoy.

    Args:
        host: Envoy address on the LAN (``host`` or ``host:port``).
        timeout: Timeout in seconds for each request.
        client: Optional pre-built client. When omitted, a client with TLS
            verification disabled is created (the Envoy certificate is
            self-signed) and closed by :meth:`close`.
    """

    def __init__(
        self,
        host: str,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        client: httpx.Client | None = None,
    ) -> None:
        self._base_url = f"https://{host}"
        self._owns_client = client is None
        self._client = client if client is not None else build_device_client(timeout)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def collect(self, credential: Credential) -> TelemetrySnapshot:
        """Fetch a fresh snapshot.

        Args:
            credential: Current token and Envoy session id.

        Returns:
            TelemetrySnapshot: Records from all three endpoints.

        Raises:
            CollectionError: If any endpoint fails. Names the first failing
                endpoint in request order.
        """
        headers = {
            "Authorization": f"Bearer {credential.auth_token}",
            "Cookie": f"{SESSION_COOKIE}={credential.session_id}",
        }
        requests: list[tuple[str, Callable[[Any], Any]]] = [
            (PRODUCTION_PATH, ProductionRecord.model_validate),
            (INVERTERS_PATH, InverterList.validate_python),
            (HOME_PATH, HomeStatus.model_validate),
        ]

        with ThreadPoolExecutor(
            max_workers=len(requests), thread_name_prefix="envoy-fetch"
        ) as pool:
            futures: list[Future] = [
                pool.submit(self._fetch, path, headers, parse)
                for path, parse in requests
            ]
            wait(futures)

        results = []
        for (path, _), future in zip(requests, futures):
            exc = future.exception()
            if exc is not None:
                if isinstance(exc, CollectionError):
                    raise exc
                raise CollectionError(path, f"unexpected error: {exc!r}") from exc
            results.append(future.result())

        production, inverters, home = results
        snapshot = TelemetrySnapshot(
            production=production,
            inverters=tuple(inverters),
            home=home,
        )
        logger.debug(
            "Collected snapshot: %d W now, %d inverter(s)",
            production.watts_now,
            len(snapshot.inverters),
        )
        return snapshot

    def _fetch(
        self,
        path: str,
        headers: dict[str, str],
        parse: Callable[[Any], Any],
    ) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = self._client.get(url, headers=headers)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise CollectionError(
                path, f"HTTP {exc.response.status_code}"
            ) from exc
        except httpx.TimeoutException as exc:
            raise CollectionError(path, f"timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise CollectionError(path, f"request failed: {exc}") from exc
        except ValueError as exc:
            raise CollectionError(path, "response was not valid JSON") from exc

        try:
            return parse(body)
        except ValidationError as exc:
            raise CollectionError(
                path, f"unexpected response shape ({exc.error_count()} error(s))"
            ) from exc
