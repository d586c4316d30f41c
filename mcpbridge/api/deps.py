from collections.abc import AsyncGenerator

from fastapi import Request

from mcpbridge.core.container import AppContainer
from mcpbridge.mcp.session_manager import StdioSessionManager
from mcpbridge.mcp.transports.base import MCPClient


def get_container(request: Request) -> AppContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise RuntimeError("AppContainer is not initialized")
    return container


async def get_mcp_client(request: Request) -> AsyncGenerator[MCPClient, None]:
    """One client per inbound request; HTTP session state is never shared across callers."""
    client = get_container(request).client_factory.create_client()
    try:
        yield client
    finally:
        await client.close()


def get_session_manager(request: Request) -> StdioSessionManager:
    return get_container(request).session_manager
