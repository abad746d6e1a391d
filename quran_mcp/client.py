"""
Async client for the Quran Foundation content API.

A QuranClient is the "client handle" the rest of the server works with. It
wraps an httpx.AsyncClient and hides the OAuth2 Client Credentials flow:

1. Construction is cheap and does no I/O. No token is requested yet.
2. On the first content request, the client POSTs its credentials to the
   OAuth2 token endpoint and receives a short-lived access token.
3. The token is cached and reused until shortly before it expires
   (the Quran Foundation issues tokens valid for one hour).
4. Every content request carries two headers: x-auth-token (the access token)
   and x-client-id (the OAuth2 client id).

Token state is a two-state machine:

    unauthenticated --(first request / expired)--> authenticated(expiry)
    authenticated   --(clear_cached_token / 401)--> unauthenticated

Callers only see request-level operations plus clear_cached_token(); nobody
outside this module touches the token itself.

Upstream payloads are parsed into pydantic models. Unknown fields are
ignored so that additive API changes don't break the server.
"""

import asyncio
import logging
import time
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, model_validator

from quran_mcp.errors import QuranAPIError, QuranAuthError

logger = logging.getLogger("quran-mcp.client")

TOKEN_PATH = "/oauth2/token"
CONTENT_API_PREFIX = "/content/api/v4"

# The upstream issues one-hour tokens. We stop using a token a little before
# it expires so an in-flight request never carries a token that dies mid-way.
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600
TOKEN_EXPIRY_MARGIN_SECONDS = 30

REQUEST_TIMEOUT_SECONDS = 30.0


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class VerseTranslation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    resource_id: int | None = None
    resource_name: str | None = None
    language_name: str | None = None
    text: str = ""


class VerseTafsir(BaseModel):
    model_config = ConfigDict(extra="ignore")

    resource_id: int | None = None
    resource_name: str | None = None
    language_name: str | None = None
    text: str = ""


class Word(BaseModel):
    model_config = ConfigDict(extra="ignore")

    position: int | None = None
    char_type_name: str | None = None
    text_uthmani: str | None = None
    text_imlaei: str | None = None


class Verse(BaseModel):
    """A single verse as returned by GET /verses/by_key/{verse_key}."""

    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    verse_key: str
    verse_number: int | None = None
    chapter_id: int | None = None
    page_number: int | None = None
    juz_number: int | None = None
    text_uthmani: str | None = None
    translations: list[VerseTranslation] = []
    tafsirs: list[VerseTafsir] = []
    words: list[Word] = []

    @model_validator(mode="after")
    def fill_from_verse_key(self) -> "Verse":
        # chapter_id is only present when requested via `fields`; the verse key
        # ("chapter:verse") always carries both numbers.
        chapter, _, verse = self.verse_key.partition(":")
        if self.chapter_id is None and chapter.isdigit():
            self.chapter_id = int(chapter)
        if self.verse_number is None and verse.isdigit():
            self.verse_number = int(verse)
        return self


class TranslationResource(BaseModel):
    """One entry of GET /resources/translations."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    author_name: str | None = None
    slug: str | None = None
    language_name: str | None = None


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class QuranClient:
    """
    Authenticated client for one set of credentials in one environment.

    Args:
        client_id: OAuth2 client id issued by the Quran Foundation
        client_secret: OAuth2 client secret (never logged)
        content_base_url: Origin of the content API
        auth_base_url: Origin of the OAuth2 token server
        default_language: Locale sent as `language` on every content request
        timeout: Per-request timeout in seconds (applies to token and content calls)
        transport: Optional httpx transport, used by tests to stub the network
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        content_base_url: str,
        auth_base_url: str,
        default_language: str = "en",
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client_id = client_id
        self._client_secret = client_secret
        self.content_base_url = content_base_url.rstrip("/")
        self.auth_base_url = auth_base_url.rstrip("/")
        self.default_language = default_language

        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._access_token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"QuranClient(client_id={self.client_id!r}, content_base_url={self.content_base_url!r})"

    async def __aenter__(self) -> "QuranClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # --- Token state ---

    @property
    def is_authenticated(self) -> bool:
        """True while a cached, unexpired access token is held."""
        return self._access_token is not None and time.monotonic() < self._token_expires_at

    def clear_cached_token(self) -> None:
        """Forget the access token so the next request re-authenticates."""
        self._access_token = None
        self._token_expires_at = 0.0

    async def _get_access_token(self) -> str:
        if self._access_token is not None and self.is_authenticated:
            return self._access_token

        # Concurrent first requests wait here and reuse whichever token the
        # first one obtained.
        async with self._token_lock:
            if self._access_token is not None and self.is_authenticated:
                return self._access_token
            return await self._request_token()

    async def _request_token(self) -> str:
        response = await self._http.post(
            f"{self.auth_base_url}{TOKEN_PATH}",
            data={"grant_type": "client_credentials", "scope": "content"},
            auth=(self.client_id, self._client_secret),
        )
        if not response.is_success:
            raise QuranAuthError(
                f"Token request rejected: {_error_message(response)}",
                status_code=response.status_code,
            )

        payload = response.json()
        token = payload.get("access_token")
        if not token:
            raise QuranAuthError(
                "Token response did not contain an access_token",
                status_code=response.status_code,
            )

        expires_in = float(payload.get("expires_in") or DEFAULT_TOKEN_LIFETIME_SECONDS)
        self._access_token = token
        self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 0)

        logger.info(
            "Access token acquired",
            extra={"log_data": {"auth_base_url": self.auth_base_url, "expires_in": expires_in}},
        )
        return token

    # --- Requests ---

    async def _send(self, url: str, params: dict[str, Any]) -> httpx.Response:
        token = await self._get_access_token()
        return await self._http.get(
            url,
            params=params,
            headers={"x-auth-token": token, "x-client-id": self.client_id},
        )

    async def request(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Issue an authenticated GET against the content API and return the JSON body.

        `path` is relative to /content/api/v4. Parameters with a None value are
        dropped. The `language` parameter defaults to the client's default
        language.

        Raises:
            QuranAuthError: If the credentials are rejected
            QuranAPIError: If the content API answers with a non-2xx status
            httpx.TransportError: On network failures or timeouts
        """
        query: dict[str, Any] = {"language": self.default_language}
        if params:
            query.update({key: value for key, value in params.items() if value is not None})
        url = f"{self.content_base_url}{CONTENT_API_PREFIX}{path}"

        response = await self._send(url, query)
        if response.status_code == 401:
            # The server no longer accepts our token (revoked, or expired
            # earlier than announced). One fresh handshake, then give up.
            logger.info("Access token rejected by content API, re-authenticating")
            self.clear_cached_token()
            response = await self._send(url, query)

        if not response.is_success:
            raise QuranAPIError(_error_message(response), status_code=response.status_code)
        return response.json()

    async def find_verse_by_key(
        self,
        verse_key: str,
        *,
        translations: list[int] | None = None,
        words: bool = False,
        tafsirs: list[int] | None = None,
    ) -> Verse:
        """Fetch one verse by its "chapter:verse" key."""
        params: dict[str, Any] = {
            "fields": "text_uthmani,chapter_id",
            "words": "true" if words else "false",
        }
        if translations:
            params["translations"] = ",".join(str(t) for t in translations)
            params["translation_fields"] = "resource_name,language_name"
        if tafsirs:
            params["tafsirs"] = ",".join(str(t) for t in tafsirs)
        if words:
            params["word_fields"] = "text_uthmani,text_imlaei"

        payload = await self.request(f"/verses/by_key/{verse_key}", params)
        if "verse" not in payload:
            raise QuranAPIError(f"Unexpected response for verse {verse_key}: missing 'verse'")
        return Verse.model_validate(payload["verse"])

    async def find_all_translations(self, language: str | None = None) -> list[TranslationResource]:
        """List every translation resource the API offers."""
        payload = await self.request("/resources/translations", {"language": language})
        return [TranslationResource.model_validate(t) for t in payload.get("translations", [])]


def _error_message(response: httpx.Response) -> str:
    """Best-effort human-readable message from an error response."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("message", "error_description", "error"):
            if body.get(key):
                return f"{body[key]} (HTTP {response.status_code})"

    text = response.text.strip()[:200]
    return f"{text or response.reason_phrase} (HTTP {response.status_code})"
