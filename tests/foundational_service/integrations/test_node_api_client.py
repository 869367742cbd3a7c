from __future__ import annotations

from typing import List

import httpx
import pytest

from business_service.registry.models import QueryState
from business_service.registry.store import RegistryStore
from foundational_service.integrations.node_api_client import (
    MalformedPayload,
    NodeApiClient,
    NodeNotFound,
    ResponseError,
    TransportFailure,
)

NODES_PAYLOAD = {
    "nodes": [
        {"pubkey": "PkA", "address": "1.1.1.1", "status": "online", "last_seen": 100, "credits": 10},
        {"pubkey": "PkA", "address": "2.2.2.2", "status": "offline", "last_seen": 50, "credits": 99},
        {"pubkey": "PkB", "address": "3.3.3.3", "status": "syncing"},
    ],
    "pagination": {"total_items": 3, "total_pages": 1, "page": 1, "limit": 50},
}


class RecordingTransport(httpx.AsyncBaseTransport):
    def __init__(self, handler) -> None:
        self._handler = handler
        self.requests: List[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)


def _client(handler) -> tuple[NodeApiClient, RecordingTransport]:
    transport = RecordingTransport(handler)
    return NodeApiClient(base_url="http://backend.test/", transport=transport), transport


@pytest.mark.asyncio
async def test_get_nodes_sends_query_parameters() -> None:
    client, transport = _client(lambda request: httpx.Response(200, json=NODES_PAYLOAD))
    async with client:
        page = await client.get_nodes(
            QueryState(page=2, limit=25, status="online", sort="credits", order="desc", include_offline=False)
        )

    request = transport.requests[0]
    assert request.url.path == "/api/nodes"
    assert dict(request.url.params) == {
        "page": "2",
        "limit": "25",
        "status": "online",
        "sort": "credits",
        "order": "desc",
        "include_offline": "false",
    }
    assert request.headers["X-Request-ID"]
    assert len(page.nodes) == 3
    assert page.pagination.total_items == 3


@pytest.mark.asyncio
async def test_get_nodes_omits_unset_filters() -> None:
    client, transport = _client(lambda request: httpx.Response(200, json=NODES_PAYLOAD))
    async with client:
        await client.get_nodes(QueryState())

    assert dict(transport.requests[0].url.params) == {"page": "1", "limit": "50", "include_offline": "true"}


@pytest.mark.asyncio
async def test_http_error_status_maps_to_response_error() -> None:
    client, _ = _client(lambda request: httpx.Response(503))
    async with client:
        with pytest.raises(ResponseError) as excinfo:
            await client.get_nodes(QueryState())

    assert excinfo.value.status_code == 503
    assert str(excinfo.value) == "HTTP 503: Service Unavailable"
    assert excinfo.value.endpoint == "/api/nodes"


@pytest.mark.asyncio
async def test_network_error_maps_to_transport_failure() -> None:
    def _raise(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client, _ = _client(_raise)
    async with client:
        with pytest.raises(TransportFailure) as excinfo:
            await client.get_nodes(QueryState())

    assert excinfo.value.status_code is None
    assert "connection refused" in str(excinfo.value)
    assert str(excinfo.value).startswith("Failed to fetch /api/nodes")


@pytest.mark.asyncio
async def test_invalid_json_maps_to_malformed_payload() -> None:
    client, _ = _client(lambda request: httpx.Response(200, content=b"<html>oops</html>"))
    async with client:
        with pytest.raises(MalformedPayload):
            await client.get_nodes(QueryState())


@pytest.mark.asyncio
async def test_schema_violation_maps_to_malformed_payload() -> None:
    client, _ = _client(lambda request: httpx.Response(200, json={"nodes": [{"status": "online"}]}))
    async with client:
        with pytest.raises(MalformedPayload) as excinfo:
            await client.get_nodes(QueryState())

    assert "Malformed response from /api/nodes" in str(excinfo.value)


@pytest.mark.asyncio
async def test_get_node_encodes_pubkey_and_maps_404() -> None:
    client, transport = _client(lambda request: httpx.Response(404))
    async with client:
        with pytest.raises(NodeNotFound) as excinfo:
            await client.get_node("abc/def")

    assert transport.requests[0].url.raw_path == b"/api/nodes/abc%2Fdef"
    assert excinfo.value.status_code == 404
    assert isinstance(excinfo.value, ResponseError)


@pytest.mark.asyncio
async def test_get_node_returns_observation() -> None:
    client, _ = _client(
        lambda request: httpx.Response(200, json={"pubkey": "PkA", "status": "online", "version": "0.7"})
    )
    async with client:
        node = await client.get_node("PkA")

    assert node.identity == "PkA"
    assert node.telemetry["version"] == "0.7"


@pytest.mark.asyncio
async def test_get_health_returns_mapping() -> None:
    client, transport = _client(lambda request: httpx.Response(200, json={"status": "ok"}))
    async with client:
        health = await client.get_health()

    assert health == {"status": "ok"}
    assert transport.requests[0].url.path == "/health"


@pytest.mark.asyncio
async def test_client_drives_store_end_to_end() -> None:
    client, _ = _client(lambda request: httpx.Response(200, json=NODES_PAYLOAD))
    async with client:
        store = RegistryStore(client)
        snapshot = await store.fetch()

    assert [record.identity for record in snapshot.nodes] == ["PkA", "PkB"]
    record = snapshot.nodes[0]
    assert record.addresses == ("1.1.1.1", "2.2.2.2")
    assert record.status == "online"
    assert record.last_seen == 100
    assert record.telemetry["credits"] == 10


@pytest.mark.asyncio
async def test_store_surfaces_client_errors() -> None:
    client, _ = _client(lambda request: httpx.Response(500))
    async with client:
        store = RegistryStore(client)
        snapshot = await store.fetch()

    assert snapshot.error == "HTTP 500: Internal Server Error"
    assert snapshot.nodes == ()
    assert snapshot.pagination is None
