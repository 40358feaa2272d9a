from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import httpx

from koda.core.config import settings


@dataclass(frozen=True)
class PublishResult:
    ok: bool
    status_code: int | None
    error_code: str | None = None
    error_message: str | None = None
    retryable: bool = False


class RealtimeClient:
    """
    Publishes events to the pub/sub service's HTTP ingestion endpoint.

    - One AsyncClient per instance (connection pooling).
    - No retries here; the caller decides what to do with a failed result.
    """

    def __init__(
        self,
        *,
        url: str | None = None,
        api_key: str | None = None,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._url = url or settings.realtime_url
        key = api_key if api_key is not None else settings.realtime_api_key.get_secret_value()
        self._headers: Mapping[str, str] = {"Authorization": f"Bearer {key}"}
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds), transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def publish(self, *, channel: str, event: str, data: dict[str, Any]) -> PublishResult:
        body = {"channel": channel, "event": event, "data": data}
        try:
            resp = await self._client.post(self._url, json=body, headers=self._headers)
        except httpx.TimeoutException as e:
            return PublishResult(ok=False, status_code=None, error_code="TIMEOUT", error_message=str(e), retryable=True)
        except httpx.RequestError as e:
            # DNS errors, connection refused, TLS, etc.
            return PublishResult(ok=False, status_code=None, error_code="REQUEST_ERROR", error_message=str(e), retryable=True)

        if 200 <= resp.status_code < 300:
            return PublishResult(ok=True, status_code=resp.status_code)

        return PublishResult(
            ok=False,
            status_code=resp.status_code,
            error_code=f"HTTP_{resp.status_code}",
            error_message=f"HTTP {resp.status_code}",
            retryable=resp.status_code in (408, 429, 500, 502, 503, 504),
        )
