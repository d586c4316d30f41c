"""Client-side MCP adapter over streamable HTTP and stdio transports."""

__version__ = "0.1.0"
