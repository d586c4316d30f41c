from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class AppContainer:
    """App-scoped runtime container, stored on ``app.state`` and passed by reference."""

    settings: Any
    session_manager: Any
    client_factory: Any
    http_client: Any = None
