import shlex
from functools import lru_cache

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class HttpSettings(BaseModel):
    endpoint: str | None = None
    timeout_seconds: float = 60.0
    headers: dict[str, str] = {}


class StdioSettings(BaseModel):
    exe_path: str | None = None
    args: list[str] = []
    env: dict[str, str] = {}
    max_read_attempts: int = 10
    startup_timeout_seconds: float = 10.0
    shutdown_timeout_seconds: float = 5.0
    idle_timeout_seconds: float | None = None
    reaper_interval_seconds: float = 30.0

    @field_validator("args", mode="before")
    @classmethod
    def _split_args(cls, value):
        # Accept a single shell-quoted string, e.g. "--port 0 --name 'my server'"
        if isinstance(value, str):
            return shlex.split(value)
        return value


class MCPSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "mcpbridge"
    transport: str = "http"  # http | httpstreaming | sse | stdio
    protocol_version: str = "2024-11-05"
    client_name: str = "mcpbridge"
    client_version: str = "0.1.0"
    http: HttpSettings = HttpSettings()
    stdio: StdioSettings = StdioSettings()

    def client_info(self) -> dict[str, str]:
        return {"name": self.client_name, "version": self.client_version}


@lru_cache(maxsize=1)
def get_settings() -> MCPSettings:
    return MCPSettings()
