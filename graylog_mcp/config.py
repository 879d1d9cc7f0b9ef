# Copyright (c) 2026 Heureum AI. All rights reserved.

"""MCP Server configuration."""
from typing import Literal
from urllib.parse import urlparse

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseModel):
    """Per-server configuration.

    Attributes:
        name (str): Unique identifier for the server.
        host (str): Hostname or IP address to bind to.
        port (int): Port number to listen on.
        transport (str): Transport protocol, one of "stdio", "sse" or
            "streamable-http".
    """

    name: str
    host: str = "0.0.0.0"
    port: int
    transport: Literal["stdio", "sse", "streamable-http"] = "stdio"


class Settings(BaseSettings):
    """MCP Server settings.

    Attributes:
        SERVERS (dict[str, ServerConfig]): Map of server key to configuration.
        LOG_LEVEL (str): Root log level.
        GRAYLOG_URL (str): Base URL of the Graylog server.
        GRAYLOG_USERNAME (str): Username for basic authentication.
        GRAYLOG_PASSWORD (str): Password for basic authentication.
        GRAYLOG_TOKEN (str): Graylog API access token, used instead of
            username/password when set.
        GRAYLOG_TLS_SKIP_VERIFY (bool): Whether TLS certificate verification
            is disabled.
        GRAYLOG_TIMEOUT (float): Timeout in seconds for Graylog requests.
        DEFAULT_MAX_RESULT_SIZE (int): Default byte budget for tool responses.
            0 disables fitting.
        MAX_SAMPLE_IDS (int): Maximum message ids kept per dedup/template group.
        SEARCH_MAX_LIMIT (int): Upper bound on messages fetched per search.
        DEDUP_FETCH_MULTIPLIER (int): Overfetch factor when deduplicating.
        CONTEXT_MAX_PER_SIDE (int): Upper bound on before/after counts.
        CONTEXT_OVERFETCH_MULTIPLIER (int): Overfetch factor per context side.
        CONTEXT_MAX_FETCH_PER_SIDE (int): Absolute fetch ceiling per context side.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    SERVERS: dict[str, ServerConfig] = {
        "graylog": ServerConfig(name="graylog-mcp", port=8090),
    }

    LOG_LEVEL: str = "INFO"

    GRAYLOG_URL: str = ""
    GRAYLOG_USERNAME: str = ""
    GRAYLOG_PASSWORD: str = ""
    GRAYLOG_TOKEN: str = ""
    GRAYLOG_TLS_SKIP_VERIFY: bool = False
    GRAYLOG_TIMEOUT: float = 30.0

    DEFAULT_MAX_RESULT_SIZE: int = 50000
    MAX_SAMPLE_IDS: int = 5
    SEARCH_MAX_LIMIT: int = 10000
    DEDUP_FETCH_MULTIPLIER: int = 3

    CONTEXT_MAX_PER_SIDE: int = 500
    CONTEXT_OVERFETCH_MULTIPLIER: int = 3
    CONTEXT_MAX_FETCH_PER_SIDE: int = 1501

    @field_validator("GRAYLOG_URL")
    @classmethod
    def _check_graylog_url(cls, value: str) -> str:
        """Reject Graylog URLs that are not plain http(s)."""
        if value and urlparse(value).scheme not in ("http", "https"):
            raise ValueError(f"GRAYLOG_URL must use http or https scheme, got {value!r}")
        return value


settings = Settings()
