"""Stdio client that resolves session ids through the shared StdioSessionManager.

Lets a subprocess outlive the inbound call that started it: later calls that
carry the same session id reach the same process.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from mcpbridge.config.settings import MCPSettings
from mcpbridge.mcp.errors import ConfigurationError, NotInitializedError
from mcpbridge.utils.ids import NIL_SESSION_ID, new_session_id

if TYPE_CHECKING:
    import httpx

    from mcpbridge.mcp.session_manager import StdioSessionManager
    from mcpbridge.mcp.transports.stdio import StdioTransport

logger = logging.getLogger(__name__)


class StdioSessionClient:
    """Never owns the backing subprocess; only the manager disposes it."""

    def __init__(self, session_manager: StdioSessionManager) -> None:
        self._manager = session_manager
        self._session_id = NIL_SESSION_ID
        self._initialized = False

    @classmethod
    def from_settings(
        cls,
        settings: MCPSettings,
        *,
        session_manager: StdioSessionManager | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> StdioSessionClient:
        if session_manager is None:
            raise ConfigurationError("Stdio transport requires a session manager")
        return cls(session_manager)

    @property
    def session_id(self) -> str:
        return self._session_id

    async def initialize(self, endpoint_override: str | None = None) -> Any:
        session_id = new_session_id()
        client = self._manager.get_or_create(session_id)
        try:
            result = await client.initialize(endpoint_override)
        except (Exception, asyncio.CancelledError):
            await self._manager.remove(session_id)
            raise
        self._session_id = session_id
        self._initialized = True
        logger.info("Stdio session client initialized with session id %s", session_id)
        return result

    async def tools_list(
        self,
        session_id: str | None = None,
        cursor: str | None = None,
        endpoint_override: str | None = None,
    ) -> Any:
        client, target = self._resolve(session_id)
        return await client.tools_list(target, cursor, endpoint_override)

    async def tools_call(
        self,
        session_id: str | None,
        name: str,
        arguments: dict[str, Any] | None = None,
        endpoint_override: str | None = None,
    ) -> Any:
        client, target = self._resolve(session_id)
        return await client.tools_call(target, name, arguments, endpoint_override)

    async def resources_list(
        self,
        session_id: str | None = None,
        cursor: str | None = None,
        endpoint_override: str | None = None,
    ) -> Any:
        client, target = self._resolve(session_id)
        return await client.resources_list(target, cursor, endpoint_override)

    async def resources_read(
        self,
        session_id: str | None,
        uri: str,
        endpoint_override: str | None = None,
    ) -> Any:
        client, target = self._resolve(session_id)
        return await client.resources_read(target, uri, endpoint_override)

    async def close(self) -> None:
        """No-op: the session manager owns the subprocess."""

    def _resolve(self, session_id: str | None) -> tuple[StdioTransport, str]:
        if session_id:
            target = session_id
        elif self._initialized:
            target = self._session_id
        else:
            raise NotInitializedError(
                "Stdio session not started. Call initialize first or provide a session id."
            )
        if not self._initialized:
            self._session_id = target
            self._initialized = True
        return self._manager.get_or_create(target), target
