import logging

from fastapi import Depends
from fastapi.testclient import TestClient

from mcpbridge.api.deps import get_mcp_client
from mcpbridge.main import _configure_app_logging, create_app
from mcpbridge.mcp.session_manager import StdioSessionManager


async def _start_session(manager: StdioSessionManager, session_id: str):
    client = manager.get_or_create(session_id)
    await client.tools_list()
    return client


def test_health_reports_transport_and_sessions(stdio_settings) -> None:
    app = create_app(stdio_settings)
    with TestClient(app) as client:
        response = client.get("/health")
        assert app.state.container.session_manager is not None
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "transport": "stdio", "stdioSessions": 0}
    assert app.state.container is None


def test_shutdown_disposes_stdio_sessions(stdio_settings) -> None:
    app = create_app(stdio_settings)
    with TestClient(app) as client:
        manager = app.state.container.session_manager
        transport = client.portal.call(_start_session, manager, "lifespan-session")
        assert transport.is_running
        assert client.get("/health").json()["stdioSessions"] == 1
    assert not transport.is_running
    assert len(manager) == 0


def test_mcp_client_dependency_builds_configured_client(stdio_settings) -> None:
    app = create_app(stdio_settings)

    @app.get("/probe")
    async def probe(mcp=Depends(get_mcp_client)):
        return {"client": type(mcp).__name__, "sessionId": mcp.session_id}

    with TestClient(app) as client:
        body = client.get("/probe").json()
    assert body["client"] == "StdioSessionClient"
    assert body["sessionId"] == "00000000-0000-0000-0000-000000000000"


def test_idle_reaper_runs_for_app_lifetime(make_settings) -> None:
    app = create_app(make_settings(idle_timeout_seconds=60, reaper_interval_seconds=5))
    with TestClient(app):
        manager = app.state.container.session_manager
        assert manager._reaper_task is not None
    assert manager._reaper_task is None


def test_fallback_logging_does_not_propagate_to_root(monkeypatch) -> None:
    app_logger = logging.getLogger("mcpbridge")
    monkeypatch.setattr(app_logger, "handlers", [])
    monkeypatch.setattr(logging.getLogger("uvicorn.error"), "handlers", [])
    _configure_app_logging()
    assert len(app_logger.handlers) == 1
    assert app_logger.propagate is False
