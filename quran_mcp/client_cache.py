"""
Quran client configuration, construction, and caching.

Authenticating with the Quran Foundation API costs a round trip to the OAuth2
server, and the resulting token stays valid for an hour. Building a fresh
client per tool call would throw that token away every time. Instead, one
ClientCache holds at most one live QuranClient for the whole process, and
every tool call borrows it.

The cache is keyed by a *fingerprint* of the configuration:

    fingerprint = "<client_id>:<environment>"

The client secret and default language are deliberately not part of it: a
config that only differs in secret or language reuses the existing client.
Rotating the secret under the same client id therefore does NOT rebuild the
client; call ClientCache.invalidate() to force that.

The cache uses plain read-replace semantics without a lock. Two concurrent
misses may both build a client; the last write wins. That is harmless because
building a client has no side effects (authentication only happens on first
use).
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

from quran_mcp.client import QuranClient
from quran_mcp.environments import QuranEnvironment, parse_environment, resolve_endpoints
from quran_mcp.errors import ConfigurationError

logger = logging.getLogger("quran-mcp.cache")

DEFAULT_LANGUAGE = "en"


@dataclass(frozen=True)
class QuranConfig:
    """
    Everything needed to build a QuranClient.

    Attributes:
        client_id: OAuth2 client id from the Quran Foundation
        client_secret: OAuth2 client secret (hidden from repr, never logged)
        default_language: Locale for API responses (e.g. "en", "ur")
        environment: API environment. Strings are parsed like QURAN_ENV and None
                     means production, so after construction this is always
                     a QuranEnvironment.
    """

    client_id: str
    client_secret: str = field(repr=False)
    default_language: str = DEFAULT_LANGUAGE
    environment: QuranEnvironment | str | None = QuranEnvironment.PRODUCTION

    def __post_init__(self):
        if not self.client_id:
            raise ConfigurationError("Quran client id must not be empty")
        if not self.client_secret:
            raise ConfigurationError("Quran client secret must not be empty")
        if not isinstance(self.environment, QuranEnvironment):
            object.__setattr__(self, "environment", parse_environment(self.environment))


def _environment_of(config: QuranConfig) -> QuranEnvironment:
    if isinstance(config.environment, QuranEnvironment):
        return config.environment
    return parse_environment(config.environment)


def config_fingerprint(config: QuranConfig) -> str:
    """Cache key for a config: client id plus environment (default production)."""
    return f"{config.client_id}:{_environment_of(config).value}"


def create_quran_client(config: QuranConfig) -> QuranClient:
    """
    Build a new, not-yet-authenticated QuranClient for the given config.

    No network traffic happens here. Invalid credentials only surface on the
    client's first request.
    """
    endpoints = resolve_endpoints(config.environment)
    return QuranClient(
        client_id=config.client_id,
        client_secret=config.client_secret,
        content_base_url=endpoints.content_base_url,
        auth_base_url=endpoints.auth_base_url,
        default_language=config.default_language or DEFAULT_LANGUAGE,
    )


class ClientCache:
    """
    Holds at most one QuranClient plus the fingerprint it was built from.

    One instance is created by the server's composition root and passed to
    the tool handlers. Tests create their own instance per test case.

    Args:
        factory: Builds a client from a config. Defaults to create_quran_client;
                 tests pass a stub to count or fake constructions.
    """

    def __init__(self, factory: Callable[[QuranConfig], QuranClient] = create_quran_client):
        self._factory = factory
        self._client: QuranClient | None = None
        self._fingerprint: str | None = None

    @property
    def fingerprint(self) -> str | None:
        return self._fingerprint

    def get(self, config: QuranConfig) -> QuranClient:
        """Return the cached client for this config, building it on a miss."""
        fingerprint = config_fingerprint(config)

        if self._client is not None and self._fingerprint == fingerprint:
            logger.debug("Quran client cache hit")
            return self._client

        client = self._factory(config)
        logger.info(
            "Quran client created",
            extra={
                "log_data": {
                    # Only a prefix of the id: enough to tell configs apart in logs.
                    "client_id": config.client_id[:8],
                    "environment": _environment_of(config).value,
                    "replaced": self._client is not None,
                }
            },
        )
        self._client = client
        self._fingerprint = fingerprint
        return client

    def invalidate(self) -> None:
        """Drop the cached client, making it forget its access token first."""
        if self._client is not None:
            self._client.clear_cached_token()
            logger.info("Quran client cache invalidated")
        self._client = None
        self._fingerprint = None

    async def aclose(self) -> None:
        """Close the cached client's HTTP connections and empty the cache (server shutdown)."""
        client = self._client
        self._client = None
        self._fingerprint = None
        if client is not None:
            await client.aclose()
            logger.info("Quran client closed")
