import asyncio

import httpx
import pytest

from mcpbridge.mcp import client_manager
from mcpbridge.mcp.client_manager import MCPClientFactory
from mcpbridge.mcp.errors import ConfigurationError
from mcpbridge.mcp.session_manager import StdioSessionManager
from mcpbridge.mcp.transports import HttpTransport, StdioSessionClient
from mcpbridge.utils.ids import NIL_SESSION_ID


@pytest.mark.parametrize("transport", ["http", "HttpStreaming", "sse", "streamable-http"])
def test_http_transport_kinds_build_http_clients(http_settings, transport) -> None:
    client = MCPClientFactory(http_settings).create_client(transport)
    assert isinstance(client, HttpTransport)


def test_stdio_transport_builds_session_client(stdio_settings) -> None:
    manager = StdioSessionManager(stdio_settings)
    client = MCPClientFactory(stdio_settings, manager).create_client()
    assert isinstance(client, StdioSessionClient)


def test_every_client_exposes_session_id(stdio_settings) -> None:
    factory = MCPClientFactory(stdio_settings, StdioSessionManager(stdio_settings))
    for kind in ("http", "stdio"):
        assert factory.create_client(kind).session_id == NIL_SESSION_ID


def test_stdio_without_session_manager_is_a_configuration_error(stdio_settings) -> None:
    with pytest.raises(ConfigurationError, match="session manager"):
        MCPClientFactory(stdio_settings).create_client()


def test_unknown_transport_is_rejected(http_settings) -> None:
    with pytest.raises(ConfigurationError, match="websocket"):
        MCPClientFactory(http_settings).create_client("websocket")


def test_registered_factory_overrides_builtin(
    http_settings, monkeypatch: pytest.MonkeyPatch
) -> None:
    sentinel = object()
    monkeypatch.setitem(client_manager._transport_factory_registry, "http", None)
    MCPClientFactory.register_transport_factory(
        "HTTP", lambda settings, *, session_manager=None, http_client=None: sentinel
    )
    assert MCPClientFactory(http_settings).create_client() is sentinel


def test_http_clients_share_the_injected_pool(http_settings) -> None:
    hits: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        hits.append(request.headers.get("Mcp-Session-Id", "<none>"))
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {}})

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as pool:
            factory = MCPClientFactory(http_settings, http_client=pool)
            first, second = factory.create_client(), factory.create_client()
            await first.tools_list("session-a")
            await second.tools_list("session-b")
            return first.session_id, second.session_id

    assert asyncio.run(run()) == ("session-a", "session-b")
    assert hits == ["session-a", "session-b"]
