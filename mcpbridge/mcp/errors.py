"""Typed failures surfaced by MCP transport clients."""

from __future__ import annotations

from typing import Any


class MCPError(Exception):
    """Base class for every MCP client failure."""


class ConfigurationError(MCPError):
    """Missing endpoint, executable path or unknown transport kind."""


class NotInitializedError(MCPError):
    """Operation attempted on a stdio session adapter before any session exists."""


class TransportError(MCPError):
    """The transport failed to deliver a usable response."""

    def __init__(
        self, message: str, *, status_code: int | None = None, body: str | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ProtocolError(MCPError):
    """A well-formed JSON-RPC envelope carried a non-null error."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"MCP error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data


class DecodeError(MCPError):
    """Payload was not a decodable JSON-RPC response."""

    def __init__(self, message: str, raw: str) -> None:
        super().__init__(message)
        self.raw = raw
