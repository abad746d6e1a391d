"""
Shared test fixtures for the Quran MCP server test suite.

Key fixtures:
- make_token / make_auth_header: mint caller JWTs with any claims
- quran_config: a valid QuranConfig with dummy credentials
- fake_client / client_cache: a ClientCache whose factory hands out a
  FakeQuranClient, so tool handlers run without any network access
- verse_payload / translations_payload: upstream JSON shaped like the real API

Testing approach:
- test_environments.py, test_client_cache.py: pure unit tests of endpoint
  resolution and the cache's fingerprint/invalidation rules
- test_client.py: the real QuranClient against an httpx.MockTransport that
  emulates the OAuth2 server and the content API
- test_tools.py: tool handlers with a FakeQuranClient
- test_auth.py: caller JWT validation
- test_server.py: full MCP protocol round trips through the ASGI app
"""

import datetime

import jwt
import pytest

from quran_mcp.client import TranslationResource, Verse
from quran_mcp.client_cache import ClientCache, QuranConfig
from quran_mcp.config import settings
from quran_mcp.environments import QuranEnvironment

# Must match settings.jwt_secret_key so that test tokens are accepted.
TEST_SECRET = settings.jwt_secret_key
TEST_ALGORITHM = settings.jwt_algorithm


# ---------------------------------------------------------------------------
# Caller tokens
# ---------------------------------------------------------------------------
@pytest.fixture
def make_token():
    """
    Factory fixture to generate caller JWTs.

    Usage in tests:
        def test_something(make_token):
            token = make_token(sub="alice", name="Alice")
    """

    def _make_token(
        sub: str = "test-user",
        name: str | None = None,
        email: str | None = None,
        secret: str = TEST_SECRET,
        algorithm: str = TEST_ALGORITHM,
        exp_hours: float = 1.0,
        extra_claims: dict | None = None,
        include_exp: bool = True,
        include_sub: bool = True,
    ) -> str:
        now = datetime.datetime.now(datetime.timezone.utc)
        payload: dict = {"iat": now}

        if include_sub:
            payload["sub"] = sub
        if name is not None:
            payload["name"] = name
        if email is not None:
            payload["email"] = email
        if include_exp:
            payload["exp"] = now + datetime.timedelta(hours=exp_hours)
        if extra_claims:
            payload.update(extra_claims)

        return jwt.encode(payload, secret, algorithm=algorithm)

    return _make_token


@pytest.fixture
def make_auth_header(make_token):
    """Like make_token, but returns the full "Bearer <token>" header value."""

    def _make_auth_header(**kwargs) -> str:
        return f"Bearer {make_token(**kwargs)}"

    return _make_auth_header


# ---------------------------------------------------------------------------
# Upstream payloads
# ---------------------------------------------------------------------------
@pytest.fixture
def verse_payload() -> dict:
    """Ayat al-Kursi as returned by /verses/by_key/2:255 with no extras."""
    return {
        "id": 262,
        "verse_number": 255,
        "verse_key": "2:255",
        "chapter_id": 2,
        "hizb_number": 5,
        "juz_number": 3,
        "page_number": 42,
        "text_uthmani": "ٱللَّهُ لَآ إِلَـٰهَ إِلَّا هُوَ ٱلْحَىُّ ٱلْقَيُّومُ",
    }


@pytest.fixture
def translations_payload() -> list[dict]:
    return [
        {"id": 20, "name": "Saheeh International", "author_name": "Saheeh International",
         "slug": "en-sahih-international", "language_name": "english"},
        {"id": 234, "name": "Fatah Muhammad Jalandhari", "author_name": "Fatah Muhammad Jalandhari",
         "slug": "ur-fatah-muhammad-jalandhari", "language_name": "urdu"},
        {"id": 85, "name": "M.A.S. Abdel Haleem", "author_name": "Abdul Haleem",
         "slug": "en-haleem", "language_name": "english"},
        {"id": 31, "name": "Muhammad Hamidullah", "author_name": None,
         "slug": "fr-hamidullah", "language_name": "french"},
    ]


# ---------------------------------------------------------------------------
# Fake client and cache
# ---------------------------------------------------------------------------
class FakeQuranClient:
    """
    Stands in for QuranClient in handler tests.

    Set `error` to make every call raise it. Calls are recorded in `calls`.
    """

    def __init__(self, verse: dict | None = None, translations: list[dict] | None = None):
        self.verse = verse or {}
        self.translations = translations or []
        self.error: Exception | None = None
        self.calls: list[tuple[str, dict]] = []
        self.token_cleared = False
        self.closed = False

    async def find_verse_by_key(self, verse_key, *, translations=None, words=False, tafsirs=None):
        self.calls.append(
            ("find_verse_by_key",
             {"verse_key": verse_key, "translations": translations, "words": words, "tafsirs": tafsirs})
        )
        if self.error is not None:
            raise self.error
        return Verse.model_validate(self.verse)

    async def find_all_translations(self, language=None):
        self.calls.append(("find_all_translations", {"language": language}))
        if self.error is not None:
            raise self.error
        return [TranslationResource.model_validate(t) for t in self.translations]

    def clear_cached_token(self):
        self.token_cleared = True

    async def aclose(self):
        self.closed = True


@pytest.fixture
def quran_config() -> QuranConfig:
    return QuranConfig(
        client_id="test-client-id",
        client_secret="test-client-secret",
        environment=QuranEnvironment.PRE_PRODUCTION,
    )


@pytest.fixture
def fake_client(verse_payload, translations_payload) -> FakeQuranClient:
    return FakeQuranClient(verse=verse_payload, translations=translations_payload)


@pytest.fixture
def client_cache(fake_client) -> ClientCache:
    """A fresh cache per test whose factory always returns fake_client."""
    return ClientCache(factory=lambda config: fake_client)
