"""MCP client contract shared by the HTTP and stdio transports."""

from __future__ import annotations

from typing import Any, Protocol

INITIALIZE_METHOD = "initialize"


class MCPClient(Protocol):
    """Uniform client contract; every call returns the raw JSON-RPC ``result``."""

    @property
    def session_id(self) -> str: ...

    async def initialize(self, endpoint_override: str | None = None) -> Any: ...

    async def tools_list(
        self,
        session_id: str | None = None,
        cursor: str | None = None,
        endpoint_override: str | None = None,
    ) -> Any: ...

    async def tools_call(
        self,
        session_id: str | None,
        name: str,
        arguments: dict[str, Any] | None = None,
        endpoint_override: str | None = None,
    ) -> Any: ...

    async def resources_list(
        self,
        session_id: str | None = None,
        cursor: str | None = None,
        endpoint_override: str | None = None,
    ) -> Any: ...

    async def resources_read(
        self,
        session_id: str | None,
        uri: str,
        endpoint_override: str | None = None,
    ) -> Any: ...

    async def close(self) -> None: ...


def initialize_params(protocol_version: str, client_info: dict[str, str]) -> dict[str, Any]:
    return {
        "protocolVersion": protocol_version,
        "capabilities": {},
        "clientInfo": client_info,
    }


def cursor_params(cursor: str | None) -> dict[str, Any]:
    return {"cursor": cursor} if cursor else {}


def tool_call_params(name: str, arguments: dict[str, Any] | None) -> dict[str, Any]:
    return {"name": name, "arguments": arguments if arguments is not None else {}}
