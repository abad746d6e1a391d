"""
Application configuration loaded from environment variables.

Uses pydantic-settings to define typed configuration that automatically reads
from environment variables (or a local .env file). Two groups of settings:

- Settings (MCP_ prefix): how the MCP server itself runs: bind address,
  transport, log level, and the JWT secret used to admit callers.
- QuranSettings (QURAN_ prefix): credentials and environment for the
  Quran Foundation API.

In production the credentials are injected as secrets; locally you can put
them in .env:

    QURAN_CLIENT_ID=...
    QURAN_CLIENT_SECRET=...
    QURAN_ENV=pre-production
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from quran_mcp.client_cache import DEFAULT_LANGUAGE, QuranConfig
from quran_mcp.environments import parse_environment
from quran_mcp.errors import ConfigurationError


class Settings(BaseSettings):
    """
    Server configuration with environment variable bindings.

    Each field maps to an environment variable with the MCP_ prefix,
    e.g. `port` reads from MCP_PORT and `auth_enabled` from MCP_AUTH_ENABLED.
    """

    # "0.0.0.0" is required inside containers so traffic from outside reaches
    # the server. Use "127.0.0.1" to accept local connections only.
    host: str = "0.0.0.0"
    port: int = 8080

    # Maps to Python's logging levels.
    log_level: str = "info"

    # "streamable-http" for remote clients, "stdio" for a local MCP client
    # that spawns the server as a subprocess.
    transport: Literal["streamable-http", "stdio"] = "streamable-http"

    # --- Caller authentication ---

    # When enabled, every tools/list and tools/call request needs a valid
    # Bearer JWT. stdio has no HTTP headers, so disable it there.
    auth_enabled: bool = True

    # Default is for local development only - never use it in production.
    jwt_secret_key: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"

    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class QuranSettings(BaseSettings):
    """
    Quran Foundation API credentials and environment selection.

    Reads QURAN_CLIENT_ID, QURAN_CLIENT_SECRET, QURAN_ENV and
    QURAN_DEFAULT_LANGUAGE. Credentials default to empty so that importing
    this module never fails; load_quran_config() enforces them.
    """

    client_id: str = ""
    client_secret: str = ""

    # "production" or "pre-production" (case-insensitive).
    env: str = "production"

    default_language: str = DEFAULT_LANGUAGE

    model_config = SettingsConfigDict(
        env_prefix="QURAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def load_quran_config(quran_settings: QuranSettings) -> QuranConfig:
    """
    Turn raw settings into a validated QuranConfig.

    Raises:
        ConfigurationError: If the client id or secret is missing
    """
    missing = [
        name
        for name, value in (
            ("QURAN_CLIENT_ID", quran_settings.client_id),
            ("QURAN_CLIENT_SECRET", quran_settings.client_secret),
        )
        if not value.strip()
    ]
    if missing:
        raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

    return QuranConfig(
        client_id=quran_settings.client_id.strip(),
        client_secret=quran_settings.client_secret.strip(),
        default_language=quran_settings.default_language,
        environment=parse_environment(quran_settings.env),
    )


# Singleton instances: import these from other modules.
settings = Settings()
quran_settings = QuranSettings()
