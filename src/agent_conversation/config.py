"""Environment-derived settings for the chat core."""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from . import __version__

DEFAULT_SERVER_URL = "http://localhost:8081"
DEFAULT_MODEL = "gpt-4o"
DEFAULT_PREAMBLE = "You are a helpful assistant. Use your tools when necessary."
CLIENT_NAME = "agent-conversation"


@dataclass
class Settings:
    """Model and tool-server configuration shared by every chat turn."""

    api_key: Optional[str] = None
    server_url: str = DEFAULT_SERVER_URL
    endpoint_path: str = "/mcp"
    model: str = DEFAULT_MODEL
    preamble: str = DEFAULT_PREAMBLE
    max_tokens: int = 1024
    max_turns: int = 8

    # Handshake identity sent to the tool server
    client_name: str = CLIENT_NAME
    client_version: str = __version__

    # Seconds
    liveness_timeout: float = 2.0
    catalog_timeout: float = 10.0
    connect_timeout: float = 10.0

    @property
    def endpoint(self) -> str:
        """Full URL of the tool server's streamable HTTP endpoint."""
        return f"{self.server_url.rstrip('/')}{self.endpoint_path}"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from the process environment (or the given mapping).

        Recognized variables: ``OPENAI_API_KEY``, ``MCP_SERVER_URL``,
        ``AGENT_MODEL`` and ``AGENT_MAX_TOKENS``. Unset or empty values fall
        back to the defaults.
        """
        env = os.environ if environ is None else environ

        settings = cls(api_key=env.get("OPENAI_API_KEY") or None)
        if env.get("MCP_SERVER_URL"):
            settings.server_url = env["MCP_SERVER_URL"]
        if env.get("AGENT_MODEL"):
            settings.model = env["AGENT_MODEL"]
        if env.get("AGENT_MAX_TOKENS"):
            settings.max_tokens = int(env["AGENT_MAX_TOKENS"])
        return settings
