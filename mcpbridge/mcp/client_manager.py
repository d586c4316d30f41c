from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from mcpbridge.config.settings import MCPSettings
from mcpbridge.mcp.errors import ConfigurationError

if TYPE_CHECKING:
    import httpx

    from mcpbridge.mcp.session_manager import StdioSessionManager
    from mcpbridge.mcp.transports.base import MCPClient

logger = logging.getLogger(__name__)

_TRANSPORT_ALIASES = {
    "httpstreaming": "http",
    "streamable-http": "http",
    "sse": "http",
}
# Transports are registered at import time (http, stdio); tests can override via register_transport_factory
_transport_factory_registry: dict[str, TransportFactory] = {}


class TransportFactory(Protocol):
    def __call__(
        self,
        settings: MCPSettings,
        *,
        session_manager: StdioSessionManager | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> MCPClient: ...


def normalize_transport_name(name: str) -> str:
    key = name.lower().strip()
    return _TRANSPORT_ALIASES.get(key, key)


class MCPClientFactory:
    """Builds one MCP client per logical caller for the configured transport kind."""

    def __init__(
        self,
        settings: MCPSettings,
        session_manager: StdioSessionManager | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._session_manager = session_manager
        self._http_client = http_client

    @staticmethod
    def register_transport_factory(name: str, factory: TransportFactory) -> None:
        """Register a transport factory. name is e.g. 'stdio', 'http'."""
        _transport_factory_registry[normalize_transport_name(name)] = factory

    def create_client(self, transport: str | None = None) -> MCPClient:
        name = transport or self._settings.transport
        factory = _transport_factory_registry.get(normalize_transport_name(name))
        if factory is None:
            raise ConfigurationError(f"Transport type '{name}' is not supported")
        logger.debug("Creating MCP client for transport %s", name)
        return factory(
            self._settings,
            session_manager=self._session_manager,
            http_client=self._http_client,
        )
