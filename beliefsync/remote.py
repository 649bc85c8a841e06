"""Async client for the key-value state service.

Zero local-storage coupling: this module only speaks HTTP. Every request
carries the session credential and a bounded timeout. Transport problems
and non-2xx responses never raise; fetches return None and writes return a
``SendResult`` whose ``SyncError`` says what went wrong.
"""

import json
import logging
import time
from typing import Any, Dict, Optional

import httpx

from beliefsync.credentials import Credentials
from beliefsync.types import (
    SYNC_ERROR_AUTH,
    SYNC_ERROR_HTTP,
    SYNC_ERROR_MALFORMED,
    SYNC_ERROR_NETWORK,
    SYNC_ERROR_OFFLINE,
    SYNC_ERROR_TIMEOUT,
    RemoteRecord,
    SendResult,
)

logger = logging.getLogger(__name__)

STATE_PATH = "/api/state"
HEALTH_PATH = "/api/health"


def _classify_status(status_code: int) -> str:
    """Map a non-2xx status code to a sync error category."""
    if status_code in (401, 403):
        return SYNC_ERROR_AUTH
    return SYNC_ERROR_HTTP


class RemoteStateClient:
    """HTTP client for ``/api/state``.

    Args:
        credentials: Backend URL and session credential.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (used to route requests in-process).
    """

    def __init__(
        self,
        credentials: Credentials,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def configured(self) -> bool:
        return self.credentials.configured

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.credentials.backend_url or "",
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _headers(self, json_body: bool = False) -> Dict[str, str]:
        headers = self.credentials.headers()
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # === State Operations ===

    async def fetch(self, key: str) -> Optional[RemoteRecord]:
        """Fetch the service's record for ``key``.

        Returns:
            The record, or None when absent, unreachable, unauthorized or malformed.
        """
        if not self.configured:
            return None

        try:
            resp = await self._get_client().get(
                STATE_PATH, params={"key": key}, headers=self._headers()
            )
        except httpx.TimeoutException as e:
            logger.debug(f"Fetch {key!r} timed out: {e}")
            return None
        except httpx.HTTPError as e:
            logger.debug(f"Fetch {key!r} failed: {e}")
            return None

        if resp.status_code != 200:
            if resp.status_code != 404:
                logger.debug(
                    f"Fetch {key!r} returned HTTP {resp.status_code} "
                    f"({_classify_status(resp.status_code)})"
                )
            return None

        return self._parse_record(key, resp)

    def _parse_record(self, key: str, resp: httpx.Response) -> Optional[RemoteRecord]:
        try:
            body = resp.json()
        except (json.JSONDecodeError, ValueError) as e:
            logger.debug(f"Fetch {key!r} response parse error: {e}")
            return None
        if not isinstance(body, dict):
            return None

        data: Any = body.get("data")
        if data is None or data == "":
            return None

        updated_at = body.get("updated_at")
        if isinstance(updated_at, bool) or not isinstance(updated_at, (int, float)):
            logger.debug(f"Fetch {key!r} response has no usable updated_at: {updated_at!r}")
            return None

        # The service returns the stored value decoded; the local store keeps strings
        serialized = data if isinstance(data, str) else json.dumps(data)
        return RemoteRecord(key=key, data=serialized, updated_at=int(updated_at))

    def _write_result(self, key: str, resp: httpx.Response) -> SendResult:
        if not resp.is_success:
            return SendResult.failure(
                key,
                _classify_status(resp.status_code),
                f"HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        # An empty body (204) is an acknowledgement; anything else must be JSON
        if resp.content:
            try:
                resp.json()
            except (json.JSONDecodeError, ValueError) as e:
                logger.debug(f"Write {key!r} response parse error: {e}")
                return SendResult.failure(
                    key,
                    SYNC_ERROR_MALFORMED,
                    "Unparsable response",
                    status_code=resp.status_code,
                )
        return SendResult.success(key, resp.status_code)

    async def send(self, key: str, value: str) -> SendResult:
        """Upsert ``value`` under ``key`` on the service."""
        if not self.configured:
            return SendResult.failure(key, SYNC_ERROR_OFFLINE, "No backend configured")

        try:
            resp = await self._get_client().post(
                STATE_PATH,
                json={"key": key, "value": value},
                headers=self._headers(json_body=True),
            )
        except httpx.TimeoutException as e:
            return SendResult.failure(key, SYNC_ERROR_TIMEOUT, f"Request timed out: {e}")
        except httpx.HTTPError as e:
            return SendResult.failure(key, SYNC_ERROR_NETWORK, f"Connection failed: {e}")

        return self._write_result(key, resp)

    async def delete(self, key: str) -> SendResult:
        """Delete ``key`` on the service. Deleting a missing key succeeds."""
        if not self.configured:
            return SendResult.failure(key, SYNC_ERROR_OFFLINE, "No backend configured")

        try:
            resp = await self._get_client().delete(
                STATE_PATH, params={"key": key}, headers=self._headers()
            )
        except httpx.TimeoutException as e:
            return SendResult.failure(key, SYNC_ERROR_TIMEOUT, f"Request timed out: {e}")
        except httpx.HTTPError as e:
            return SendResult.failure(key, SYNC_ERROR_NETWORK, f"Connection failed: {e}")

        return self._write_result(key, resp)

    # === Connectivity ===

    async def health_check(self) -> Dict[str, Any]:
        """Check the service's health endpoint.

        Returns:
            Dict with keys:
            - 'healthy': bool indicating if the service is reachable
            - 'latency_ms': response time in milliseconds (if healthy)
            - 'error': error message (if not healthy)
        """
        if not self.configured:
            return {"healthy": False, "error": "No backend configured"}

        start = time.monotonic()
        try:
            resp = await self._get_client().get(HEALTH_PATH)
        except httpx.TimeoutException:
            return {"healthy": False, "error": "Request timed out"}
        except httpx.HTTPError as e:
            return {"healthy": False, "error": f"Connection failed: {e}"}

        if resp.status_code == 200:
            return {
                "healthy": True,
                "latency_ms": round((time.monotonic() - start) * 1000, 2),
            }
        return {"healthy": False, "error": f"HTTP {resp.status_code}"}
