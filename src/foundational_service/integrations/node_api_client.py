from __future__ import annotations

"""Async client for the node registry backend with transport/response/payload error mapping."""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import quote

import httpx

from business_service.registry.models import NodePage, QueryState, RawObservation
from foundational_service.contracts.nodes import SchemaValidationError, parse_node, parse_nodes_response
from project_utility.config.settings import DEFAULT_API_BASE_URL, DashboardSettings
from project_utility.tracing import trace_span

__all__ = [
    "MalformedPayload",
    "NodeApiClient",
    "NodeApiError",
    "NodeNotFound",
    "ResponseError",
    "TransportFailure",
]

DEFAULT_TIMEOUT = 10.0


@dataclass(slots=True)
class NodeApiError(RuntimeError):
    message: str
    endpoint: str
    status_code: Optional[int] = None

    def __str__(self) -> str:
        return self.message


class TransportFailure(NodeApiError):
    """The backend could not be reached."""


class ResponseError(NodeApiError):
    """The backend answered with a non-success status."""


class NodeNotFound(ResponseError):
    """The requested public key is unknown to the backend."""


class MalformedPayload(NodeApiError):
    """The backend answered, but not with the expected shape."""


class NodeApiClient:
    def __init__(
        self,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )
        self._logger = logger or logging.getLogger("foundational_service.integrations.node_api_client")

    @classmethod
    def from_settings(
        cls,
        settings: DashboardSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "NodeApiClient":
        return cls(base_url=settings.api_base_url, timeout=settings.request_timeout, transport=transport)

    async def __aenter__(self) -> "NodeApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __call__(self, query: QueryState) -> NodePage:
        return await self.get_nodes(query)

    async def get_nodes(self, query: QueryState) -> NodePage:
        endpoint = "/api/nodes"
        payload = await self._request(endpoint, params=query.to_params())
        try:
            return parse_nodes_response(payload)
        except SchemaValidationError as exc:
            raise MalformedPayload(message=f"Malformed response from {endpoint}: {exc}", endpoint=endpoint) from exc

    async def get_node(self, pubkey: str) -> RawObservation:
        endpoint = f"/api/nodes/{quote(pubkey, safe='')}"
        try:
            payload = await self._request(endpoint)
        except ResponseError as exc:
            if exc.status_code == 404:
                raise NodeNotFound(message=f"Node {pubkey} not found", endpoint=endpoint, status_code=404) from exc
            raise
        try:
            return parse_node(payload)
        except SchemaValidationError as exc:
            raise MalformedPayload(message=f"Malformed response from {endpoint}: {exc}", endpoint=endpoint) from exc

    async def get_health(self) -> Mapping[str, Any]:
        payload = await self._request("/health")
        if not isinstance(payload, Mapping):
            raise MalformedPayload(message="Malformed response from /health: expected an object", endpoint="/health")
        return payload

    async def _request(self, endpoint: str, *, params: Optional[Mapping[str, str]] = None) -> Any:
        request_id = uuid.uuid4().hex
        async with trace_span("node_api.request", endpoint=endpoint, request_id=request_id) as span:
            try:
                response = await self._client.get(endpoint, params=params, headers={"X-Request-ID": request_id})
            except httpx.RequestError as exc:
                reason = str(exc) or exc.__class__.__name__
                self._logger.warning("node_api.transport_failed", extra={"endpoint": endpoint, "error": reason})
                raise TransportFailure(
                    message=f"Failed to fetch {endpoint}: {reason}",
                    endpoint=endpoint,
                ) from exc
            span.set_attribute("status_code", response.status_code)
        self._logger.debug(
            "node_api.response",
            extra={"endpoint": endpoint, "status_code": response.status_code, "latency_ms": span.duration_ms},
        )
        if response.status_code >= 400:
            raise ResponseError(
                message=f"HTTP {response.status_code}: {response.reason_phrase}",
                endpoint=endpoint,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedPayload(
                message=f"Failed to fetch {endpoint}: response is not valid JSON",
                endpoint=endpoint,
                status_code=response.status_code,
            ) from exc
