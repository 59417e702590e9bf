"""Telemetry sinks.

A sink is the client side of the remote reporting backend. Every sink
method may be synchronous or return an awaitable; callers treat all of
them as fire-and-forget and isolate their failures.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Protocol, Sequence

import httpx

if TYPE_CHECKING:
    from anglesite_resilience.config import TelemetrySettings

logger = logging.getLogger(__name__)


class TelemetrySink(Protocol):
    """Contract of the remote telemetry backend.

    ``get_config`` returns ``{"enabled": bool}``; ``report_event`` sends a
    single payload and ``report_batch`` a list of them.
    """

    def get_config(self) -> Any: ...

    def report_event(self, payload: Mapping[str, Any]) -> Any: ...

    def report_batch(self, events: Sequence[Mapping[str, Any]]) -> Any: ...


class HttpTelemetrySink:
    """Posts telemetry to an HTTP endpoint as ``{"events": [...]}``.

    Args:
        endpoint: Collector URL. Without one the sink reports itself disabled.
        api_key: Sent as ``Authorization: Bearer <key>`` when set.
        timeout: Request timeout in seconds.
        enabled: Master switch reported by ``get_config``.
        transport: Optional httpx transport (``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        endpoint: Optional[str],
        *,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        enabled: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._endpoint = endpoint
        self._api_key = api_key
        self._timeout = timeout
        self._enabled = enabled
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: "TelemetrySettings",
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "HttpTelemetrySink":
        return cls(
            settings.endpoint,
            api_key=settings.api_key,
            timeout=settings.timeout_seconds,
            enabled=settings.enabled,
            transport=transport,
        )

    def get_config(self) -> Dict[str, bool]:
        return {"enabled": bool(self._enabled and self._endpoint)}

    async def report_event(self, payload: Mapping[str, Any]) -> None:
        await self._post([dict(payload)])

    async def report_batch(self, events: Sequence[Mapping[str, Any]]) -> None:
        if not events:
            return
        await self._post([dict(event) for event in events])

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "User-Agent": "anglesite-resilience/1.0"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _post(self, events: List[Dict[str, Any]]) -> None:
        if not self._endpoint:
            logger.debug("Telemetry endpoint not configured, dropping %d event(s)", len(events))
            return
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(self._endpoint, json={"events": events}, headers=self._headers())
            response.raise_for_status()
        logger.debug("Posted %d telemetry event(s) to %s", len(events), self._endpoint)


class InMemoryTelemetrySink:
    """Keeps reported events in memory.

    Useful for embedding without a backend and for tests. Setting
    ``fail_with`` makes every report raise that exception.
    """

    def __init__(self, enabled: bool = True, fail_with: Optional[BaseException] = None):
        self.enabled = enabled
        self.fail_with = fail_with
        self.events: List[Dict[str, Any]] = []
        self.batches: List[List[Dict[str, Any]]] = []
        self.config_requests = 0

    def get_config(self) -> Dict[str, bool]:
        self.config_requests += 1
        return {"enabled": self.enabled}

    def report_event(self, payload: Mapping[str, Any]) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.events.append(dict(payload))

    def report_batch(self, events: Sequence[Mapping[str, Any]]) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        batch = [dict(event) for event in events]
        self.batches.append(batch)
        self.events.extend(batch)

