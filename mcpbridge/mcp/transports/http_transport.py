"""MCP HTTP transport: POST JSON-RPC to a URL, receive a JSON or SSE-framed response."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from mcpbridge.config.settings import MCPSettings
from mcpbridge.mcp.errors import ConfigurationError, DecodeError, ProtocolError, TransportError
from mcpbridge.mcp.protocol_models import decode_response, encode_request
from mcpbridge.mcp.transports.base import (
    INITIALIZE_METHOD,
    cursor_params,
    initialize_params,
    tool_call_params,
)
from mcpbridge.utils.ids import NIL_SESSION_ID, new_session_id

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"
ACCEPT_HEADER = "application/json, text/event-stream"


class HttpTransport:
    """Talks to an MCP server via HTTP POST (streamable HTTP / SSE).

    Session state lives on the instance, so one instance should serve one
    logical caller at a time. Pass ``http_client`` to reuse a pooled
    ``httpx.AsyncClient``; otherwise a short-lived client is opened per call.
    """

    def __init__(
        self, settings: MCPSettings, *, http_client: httpx.AsyncClient | None = None
    ) -> None:
        self._settings = settings
        endpoint = (settings.http.endpoint or "").strip()
        self._endpoint = endpoint or None
        self._headers = dict(settings.http.headers)
        self._timeout = settings.http.timeout_seconds
        self._http_client = http_client
        self._session_id = NIL_SESSION_ID

    @classmethod
    def from_settings(
        cls,
        settings: MCPSettings,
        *,
        session_manager: Any = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> HttpTransport:
        return cls(settings, http_client=http_client)

    @property
    def session_id(self) -> str:
        return self._session_id

    def set_session_id(self, session_id: str | None) -> None:
        if session_id:
            self._session_id = session_id
            logger.debug("MCP HTTP session id set to %s", session_id)

    async def initialize(self, endpoint_override: str | None = None) -> Any:
        """Start a new session; the server may rename it via the session header."""
        self._session_id = new_session_id()
        logger.info("Generated MCP HTTP session id %s", self._session_id)
        params = initialize_params(self._settings.protocol_version, self._settings.client_info())
        result = await self._send_request(INITIALIZE_METHOD, params, endpoint_override)
        logger.info("MCP HTTP session initialized: %s", self._session_id)
        return result

    async def tools_list(
        self,
        session_id: str | None = None,
        cursor: str | None = None,
        endpoint_override: str | None = None,
    ) -> Any:
        self.set_session_id(session_id)
        return await self._send_request("tools/list", cursor_params(cursor), endpoint_override)

    async def tools_call(
        self,
        session_id: str | None,
        name: str,
        arguments: dict[str, Any] | None = None,
        endpoint_override: str | None = None,
    ) -> Any:
        self.set_session_id(session_id)
        return await self._send_request(
            "tools/call", tool_call_params(name, arguments), endpoint_override
        )

    async def resources_list(
        self,
        session_id: str | None = None,
        cursor: str | None = None,
        endpoint_override: str | None = None,
    ) -> Any:
        self.set_session_id(session_id)
        return await self._send_request("resources/list", cursor_params(cursor), endpoint_override)

    async def resources_read(
        self,
        session_id: str | None,
        uri: str,
        endpoint_override: str | None = None,
    ) -> Any:
        self.set_session_id(session_id)
        return await self._send_request("resources/read", {"uri": uri}, endpoint_override)

    async def close(self) -> None:
        """No-op for HTTP (stateless); a shared pool is closed by whoever owns it."""

    def _resolve_endpoint(self, endpoint_override: str | None) -> str:
        endpoint = (endpoint_override or "").strip() or self._endpoint
        if not endpoint:
            raise ConfigurationError("MCP HTTP endpoint is not configured")
        return endpoint

    def _build_headers(self, method: str) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": ACCEPT_HEADER,
            **self._headers,
        }
        # The session header must not be sent on initialize.
        if method.lower() != INITIALIZE_METHOD:
            headers[SESSION_HEADER] = self._session_id
        return headers

    async def _send_request(
        self, method: str, params: dict[str, Any] | None, endpoint_override: str | None
    ) -> Any:
        endpoint = self._resolve_endpoint(endpoint_override)
        response = await self._post(endpoint, encode_request(method, params), self._build_headers(method))
        body = response.text or ""

        if not response.is_success:
            logger.warning(
                "MCP HTTP non-success status: url=%s status=%s body=%s",
                endpoint, response.status_code, body[:300],
            )
            raise TransportError(
                f"HTTP {response.status_code} from {endpoint}: {body[:300]}",
                status_code=response.status_code,
                body=body,
            )

        server_session = response.headers.get(SESSION_HEADER)
        if server_session:
            if server_session != self._session_id:
                logger.info("Server provided MCP session id %s", server_session)
            self._session_id = server_session

        if not body.strip():
            logger.warning("MCP HTTP empty response: url=%s status=%s", endpoint, response.status_code)
            raise TransportError(
                f"Empty response from {endpoint} (status {response.status_code})",
                status_code=response.status_code,
                body=body,
            )

        try:
            rpc = decode_response(self._unwrap_body(body, response.headers.get("content-type")))
        except DecodeError:
            preview = body[:500].replace("\n", " ")
            logger.warning(
                "MCP HTTP invalid JSON-RPC: url=%s status=%s body_len=%d preview=%s",
                endpoint, response.status_code, len(body), preview[:100],
            )
            raise

        if rpc.error is not None:
            logger.warning("MCP JSON-RPC error %s: %s", rpc.error.code, rpc.error.message)
            raise ProtocolError(rpc.error.code, rpc.error.message, rpc.error.data)
        return rpc.result

    async def _post(self, endpoint: str, content: bytes, headers: dict[str, str]) -> httpx.Response:
        try:
            if self._http_client is not None:
                return await self._http_client.post(
                    endpoint, content=content, headers=headers, timeout=self._timeout
                )
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.post(endpoint, content=content, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"MCP HTTP request to {endpoint} failed: {e}") from e

    @classmethod
    def _unwrap_body(cls, body: str, content_type: str | None) -> str:
        is_sse = "text/event-stream" in (content_type or "").lower()
        if is_sse or body.lower().startswith("event:"):
            extracted = cls._extract_sse_data(body)
            if extracted and extracted.strip():
                return extracted
        return body

    @staticmethod
    def _extract_sse_data(body: str) -> str | None:
        # Returns the data of the first named event, e.g.:
        # event: message
        # data: {"jsonrpc":"2.0", ...}
        normalized = body.replace("\r\n", "\n").replace("\r", "\n")
        event_type: str | None = None
        data_lines: list[str] = []
        for line in normalized.split("\n"):
            if line.startswith(":"):
                continue
            lowered = line.lower()
            if lowered.startswith("event:"):
                event_type = line[6:].strip()
            elif lowered.startswith("data:"):
                data_lines.append(line[5:].lstrip())
            elif not line.strip():
                if event_type and data_lines:
                    return "\n".join(data_lines)
                event_type = None
                data_lines = []
        # Stream ended without a trailing blank line
        return "\n".join(data_lines) if data_lines else None
