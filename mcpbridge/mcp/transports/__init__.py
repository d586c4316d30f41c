"""MCP transport adapters: stdio (local subprocess) and http (remote, JSON or SSE)."""

from mcpbridge.mcp.client_manager import MCPClientFactory
from mcpbridge.mcp.transports.http_transport import HttpTransport
from mcpbridge.mcp.transports.stdio import StdioTransport
from mcpbridge.mcp.transports.stdio_session import StdioSessionClient

MCPClientFactory.register_transport_factory("http", HttpTransport.from_settings)
MCPClientFactory.register_transport_factory("stdio", StdioSessionClient.from_settings)

__all__ = [
    "HttpTransport",
    "MCPClientFactory",
    "StdioSessionClient",
    "StdioTransport",
]
