"""Registry of long-lived stdio MCP sessions, one subprocess per session id."""

from __future__ import annotations

import asyncio
import logging
import threading
import time

from mcpbridge.config.settings import MCPSettings
from mcpbridge.mcp.transports.stdio import StdioTransport

logger = logging.getLogger(__name__)


class StdioSessionManager:
    """Owns every StdioTransport it creates; callers never close entries directly.

    Lookups are guarded by a threading lock so get-or-create stays atomic
    whether it is reached from event-loop tasks or threadpool dependencies.
    Creating an entry does not spawn anything; the subprocess starts on the
    entry's first initialize or request.
    """

    def __init__(self, settings: MCPSettings) -> None:
        self._settings = settings
        self._sessions: dict[str, StdioTransport] = {}
        self._lock = threading.Lock()
        self._reaper_task: asyncio.Task | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def session_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def get_or_create(self, session_id: str) -> StdioTransport:
        if not session_id:
            raise ValueError("session_id is required")
        with self._lock:
            client = self._sessions.get(session_id)
            if client is None:
                client = StdioTransport(self._settings, session_id=session_id)
                self._sessions[session_id] = client
                logger.info("Registered MCP stdio session %s", session_id)
            return client

    def try_get(self, session_id: str) -> StdioTransport | None:
        with self._lock:
            return self._sessions.get(session_id)

    async def remove(self, session_id: str) -> bool:
        """Evict a session and terminate its subprocess."""
        with self._lock:
            client = self._sessions.pop(session_id, None)
        if client is None:
            return False
        await client.close()
        logger.info("Removed MCP stdio session %s", session_id)
        return True

    async def dispose_all(self) -> None:
        with self._lock:
            clients = list(self._sessions.values())
            self._sessions.clear()
        if clients:
            await asyncio.gather(*(client.close() for client in clients))
        logger.info("Disposed %d MCP stdio session(s)", len(clients))

    async def reap_idle(self, max_idle_seconds: float) -> list[str]:
        """Evict sessions with no request in flight and no activity for max_idle_seconds."""
        now = time.monotonic()
        with self._lock:
            expired = [
                (session_id, client)
                for session_id, client in self._sessions.items()
                if not client.is_busy and now - client.last_used > max_idle_seconds
            ]
            for session_id, _ in expired:
                del self._sessions[session_id]
        for session_id, client in expired:
            logger.info("Reaping idle MCP stdio session %s", session_id)
            await client.close()
        return [session_id for session_id, _ in expired]

    def start_reaper(self, *, interval_seconds: float, max_idle_seconds: float) -> None:
        if self._reaper_task is not None and not self._reaper_task.done():
            return
        self._reaper_task = asyncio.create_task(
            self._reap_loop(interval_seconds, max_idle_seconds)
        )

    async def stop_reaper(self) -> None:
        task, self._reaper_task = self._reaper_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _reap_loop(self, interval_seconds: float, max_idle_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.reap_idle(max_idle_seconds)
            except Exception:
                logger.warning("MCP stdio idle reaper failed", exc_info=True)
