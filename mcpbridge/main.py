import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import Depends, FastAPI

from mcpbridge.api.deps import get_session_manager
from mcpbridge.config.settings import MCPSettings, get_settings
from mcpbridge.core.container import AppContainer
from mcpbridge.mcp.session_manager import StdioSessionManager
from mcpbridge.mcp.transports import MCPClientFactory  # importing registers http/stdio transports

logger = logging.getLogger(__name__)


def _configure_app_logging() -> None:
    """Ensure mcpbridge.* logs are visible under the same sink as uvicorn error logs."""
    app_logger = logging.getLogger("mcpbridge")
    uvicorn_error_logger = logging.getLogger("uvicorn.error")

    if uvicorn_error_logger.handlers:
        app_logger.handlers = list(uvicorn_error_logger.handlers)
        app_logger.setLevel(uvicorn_error_logger.level or logging.INFO)
        app_logger.propagate = False
        return

    if not app_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(levelname)s:     %(name)s - %(message)s")
        )
        app_logger.addHandler(handler)
    app_logger.setLevel(logging.INFO)
    app_logger.propagate = False


@asynccontextmanager
async def lifespan(app: FastAPI):
    _configure_app_logging()
    settings: MCPSettings = app.state.settings

    # Shared connection pool for HTTP transports; one session registry for stdio.
    http_client = httpx.AsyncClient(timeout=settings.http.timeout_seconds)
    session_manager = StdioSessionManager(settings)
    app.state.container = AppContainer(
        settings=settings,
        session_manager=session_manager,
        client_factory=MCPClientFactory(settings, session_manager, http_client=http_client),
        http_client=http_client,
    )

    idle_timeout = settings.stdio.idle_timeout_seconds
    if idle_timeout:
        session_manager.start_reaper(
            interval_seconds=settings.stdio.reaper_interval_seconds,
            max_idle_seconds=idle_timeout,
        )
        logger.info("MCP stdio idle reaper started (idle timeout %ss)", idle_timeout)

    try:
        yield
    finally:
        await session_manager.stop_reaper()
        await session_manager.dispose_all()
        await http_client.aclose()
        app.state.container = None


def create_app(settings: MCPSettings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings

    @app.get("/health")
    async def health(
        session_manager: StdioSessionManager = Depends(get_session_manager),
    ) -> dict:
        return {
            "status": "ok",
            "transport": settings.transport,
            "stdioSessions": len(session_manager),
        }

    return app


app = create_app()
