"""MCP stdio transport: spawn subprocess and communicate via JSON-RPC over stdin/stdout."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Any

from mcpbridge.config.settings import MCPSettings
from mcpbridge.mcp.errors import ConfigurationError, DecodeError, ProtocolError, TransportError
from mcpbridge.mcp.protocol_models import (
    RpcResponse,
    decode_message,
    encode_request,
    is_server_message,
    response_from_message,
)
from mcpbridge.mcp.transports.base import (
    INITIALIZE_METHOD,
    cursor_params,
    initialize_params,
    tool_call_params,
)
from mcpbridge.utils.ids import NIL_SESSION_ID, new_session_id

logger = logging.getLogger(__name__)

# asyncio's default 64 KiB line limit is too small for large tool results.
MAX_LINE_BYTES = 10 * 1024 * 1024


class StdioTransport:
    """Owns one MCP server subprocess speaking newline-delimited JSON-RPC 2.0.

    Responses are matched to requests by position rather than by id, so every
    exchange (and process start-up) runs under a per-process lock: at most one
    request is in flight at a time.
    """

    def __init__(self, settings: MCPSettings, *, session_id: str | None = None) -> None:
        stdio = settings.stdio
        self._settings = settings
        self._exe_path = (stdio.exe_path or "").strip() or None
        self._args = [str(a) for a in stdio.args]
        if stdio.env:
            self._env: dict[str, str] | None = dict(os.environ)
            for k, v in stdio.env.items():
                if k and v is not None:
                    self._env[str(k)] = str(v)
        else:
            self._env = None
        self._max_read_attempts = max(1, stdio.max_read_attempts)
        self._startup_timeout = stdio.startup_timeout_seconds
        self._shutdown_timeout = stdio.shutdown_timeout_seconds
        self._process: asyncio.subprocess.Process | None = None
        self._stderr_task: asyncio.Task | None = None
        self._request_id = 0
        self._orphaned_responses = 0
        self._session_id = session_id or NIL_SESSION_ID
        self._closed = False
        self._lock = asyncio.Lock()
        self.last_used = time.monotonic()

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    async def initialize(self, endpoint_override: str | None = None) -> Any:
        """Spawn (or respawn) the server process and run the initialize handshake."""
        async with self._lock:
            self._ensure_open()
            if self._process is not None:
                logger.info("Restarting MCP stdio process for session %s", self._session_id)
                await self._shutdown_process()
            return await self._start()

    async def tools_list(
        self,
        session_id: str | None = None,
        cursor: str | None = None,
        endpoint_override: str | None = None,
    ) -> Any:
        self._adopt_session_id(session_id)
        return await self._request("tools/list", cursor_params(cursor))

    async def tools_call(
        self,
        session_id: str | None,
        name: str,
        arguments: dict[str, Any] | None = None,
        endpoint_override: str | None = None,
    ) -> Any:
        self._adopt_session_id(session_id)
        return await self._request("tools/call", tool_call_params(name, arguments))

    async def resources_list(
        self,
        session_id: str | None = None,
        cursor: str | None = None,
        endpoint_override: str | None = None,
    ) -> Any:
        self._adopt_session_id(session_id)
        return await self._request("resources/list", cursor_params(cursor))

    async def resources_read(
        self,
        session_id: str | None,
        uri: str,
        endpoint_override: str | None = None,
    ) -> Any:
        self._adopt_session_id(session_id)
        return await self._request("resources/read", {"uri": uri})

    async def close(self) -> None:
        """Terminate the subprocess. Never raises; the client cannot be reused afterwards."""
        self._closed = True
        await self._shutdown_process()

    def _adopt_session_id(self, session_id: str | None) -> None:
        if session_id:
            self._session_id = session_id

    def _ensure_open(self) -> None:
        if self._closed:
            raise TransportError(f"MCP stdio session {self._session_id} has been closed")

    async def _request(self, method: str, params: dict[str, Any]) -> Any:
        async with self._lock:
            self._ensure_open()
            if not self.is_running:
                if self._process is not None:
                    logger.warning(
                        "MCP stdio process for session %s exited with code %s; restarting",
                        self._session_id, self._process.returncode,
                    )
                    await self._shutdown_process()
                await self._start()
            return await self._exchange(method, params)

    async def _start(self) -> Any:
        if not self._exe_path:
            raise ConfigurationError("Stdio transport requires exe_path to be configured")
        kwargs: dict[str, Any] = {
            "stdin": asyncio.subprocess.PIPE,
            "stdout": asyncio.subprocess.PIPE,
            "stderr": asyncio.subprocess.PIPE,
            "limit": MAX_LINE_BYTES,
        }
        if self._env is not None:
            kwargs["env"] = self._env
        try:
            self._process = await asyncio.create_subprocess_exec(
                self._exe_path,
                *self._args,
                **kwargs,
            )
        except OSError as e:
            raise TransportError(f"Failed to start MCP stdio process {self._exe_path}: {e}") from e
        logger.info("Started MCP stdio process pid=%s: %s", self._process.pid, self._exe_path)
        self._stderr_task = asyncio.create_task(self._drain_stderr(self._process.stderr))
        self._request_id = 0
        self._orphaned_responses = 0

        params = initialize_params(self._settings.protocol_version, self._settings.client_info())
        try:
            result = await asyncio.wait_for(
                self._exchange(INITIALIZE_METHOD, params), timeout=self._startup_timeout
            )
        except asyncio.TimeoutError as e:
            await self._shutdown_process()
            raise TransportError(
                f"MCP stdio initialize timed out after {self._startup_timeout}s"
            ) from e
        except (Exception, asyncio.CancelledError):
            await self._shutdown_process()
            raise

        # No server-assigned ids on stdio; keep the registry key if we were given one.
        if self._session_id == NIL_SESSION_ID:
            self._session_id = new_session_id()
        logger.info("MCP stdio session initialized with id %s", self._session_id)
        return result

    async def _exchange(self, method: str, params: dict[str, Any] | None) -> Any:
        process = self._process
        if process is None or process.stdin is None or process.stdout is None:
            raise TransportError("MCP stdio process is not running")

        self._request_id += 1
        line = encode_request(method, params, self._request_id)
        logger.debug("Sending stdio request id=%s method=%s", self._request_id, method)
        try:
            process.stdin.write(line + b"\n")
            await process.stdin.drain()
            rpc = await self._read_response(process.stdout)
        except asyncio.CancelledError:
            # The line is already buffered; its reply will arrive later.
            self._orphaned_responses += 1
            raise
        except (BrokenPipeError, ConnectionResetError) as e:
            await self._shutdown_process()
            raise TransportError(f"MCP stdio process closed its input: {e}") from e
        except (TransportError, DecodeError) as e:
            # Stdout position is unknown after a failed read; restart on next call.
            logger.warning(
                "MCP stdio session %s read failed (%s); stopping process", self._session_id, e
            )
            await self._shutdown_process()
            raise
        finally:
            self.last_used = time.monotonic()

        if rpc.error is not None:
            logger.warning("MCP JSON-RPC error %s: %s", rpc.error.code, rpc.error.message)
            raise ProtocolError(rpc.error.code, rpc.error.message, rpc.error.data)
        return rpc.result

    async def _read_response(self, stdout: asyncio.StreamReader) -> RpcResponse:
        attempts = 0
        while attempts < self._max_read_attempts:
            try:
                raw = await stdout.readline()
            except ValueError as e:
                raise TransportError(f"MCP stdio line exceeded {MAX_LINE_BYTES} bytes") from e
            attempts += 1
            if not raw:
                raise TransportError("MCP stdio process closed its output")

            text = raw.decode("utf-8", errors="replace").strip()
            if not text:
                if attempts == 1:
                    raise TransportError("Empty response from stdio process")
                continue
            if not text.startswith("{"):
                logger.info("Skipping non-JSON line: %s", text[:200])
                continue

            try:
                message, text = decode_message(text)
                if is_server_message(message):
                    logger.info("Skipping server message: %s", message.get("method"))
                    continue
                rpc = response_from_message(message, text)
            except DecodeError:
                logger.warning(
                    "Failed to decode JSON-RPC response (attempt %d): %s", attempts, text[:200]
                )
                if attempts >= self._max_read_attempts:
                    raise
                continue

            if self._orphaned_responses:
                # Late reply to a cancelled request; does not count as an attempt.
                self._orphaned_responses -= 1
                attempts -= 1
                logger.info("Discarding late response id=%s from a cancelled request", rpc.id)
                continue
            logger.debug("Received stdio response id=%s", rpc.id)
            return rpc

        raise TransportError(
            f"Failed to receive valid JSON response after {self._max_read_attempts} attempts"
        )

    async def _drain_stderr(self, stderr: asyncio.StreamReader | None) -> None:
        if stderr is None:
            return
        while True:
            try:
                line = await stderr.readline()
            except ValueError:
                continue
            if not line:
                return
            text = line.decode("utf-8", errors="replace").rstrip()
            if text:
                logger.info("Stdio stderr: %s", text)

    async def _shutdown_process(self) -> None:
        process, self._process = self._process, None
        stderr_task, self._stderr_task = self._stderr_task, None
        if process is None:
            return
        try:
            if process.returncode is None:
                if process.stdin is not None and not process.stdin.is_closing():
                    process.stdin.close()
                try:
                    process.terminate()
                    await asyncio.wait_for(process.wait(), timeout=self._shutdown_timeout)
                    logger.info("MCP stdio process pid=%s exited gracefully", process.pid)
                except ProcessLookupError:
                    pass
                except asyncio.TimeoutError:
                    try:
                        process.kill()
                    except ProcessLookupError:
                        pass
                    logger.warning(
                        "MCP stdio process pid=%s killed after %.1fs timeout",
                        process.pid, self._shutdown_timeout,
                    )
                    await asyncio.wait_for(process.wait(), timeout=self._shutdown_timeout)
        except Exception:
            logger.exception("Error shutting down MCP stdio process pid=%s", process.pid)
        finally:
            if stderr_task is not None:
                stderr_task.cancel()
