import logging
import sys
from pathlib import Path

import pytest

import mcpbridge.mcp.transports  # noqa: F401 - registers http/stdio transports
from mcpbridge.config.settings import MCPSettings

FAKE_SERVER = Path(__file__).parent / "fixtures" / "fake_mcp_server.py"
HTTP_ENDPOINT = "https://mcp.example.test/mcp"


def _make_settings(*server_flags: str, transport: str = "stdio", **stdio_overrides) -> MCPSettings:
    stdio = {
        "exe_path": sys.executable,
        "args": ["-u", str(FAKE_SERVER), *server_flags],
        "shutdown_timeout_seconds": 2.0,
        "startup_timeout_seconds": 10.0,
        **stdio_overrides,
    }
    return MCPSettings(
        _env_file=None,
        transport=transport,
        http={"endpoint": HTTP_ENDPOINT},
        stdio=stdio,
    )


@pytest.fixture
def make_settings():
    """Factory: make_settings('--banner', max_read_attempts=5) -> MCPSettings."""
    return _make_settings


@pytest.fixture
def stdio_settings() -> MCPSettings:
    return _make_settings()


@pytest.fixture
def http_settings() -> MCPSettings:
    return _make_settings(transport="http")


@pytest.fixture(autouse=True)
def _mcpbridge_logs(caplog: pytest.LogCaptureFixture, monkeypatch: pytest.MonkeyPatch) -> None:
    # App startup detaches mcpbridge from the root logger; caplog listens on root.
    monkeypatch.setattr(logging.getLogger("mcpbridge"), "propagate", True)
    caplog.set_level(logging.INFO, logger="mcpbridge")
