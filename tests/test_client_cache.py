"""
Unit tests for QuranConfig, the client factory and ClientCache (quran_mcp/client_cache.py).

The cache's whole job is token reuse: equal fingerprints must hand back the
very same client object, anything else must build a new one.
"""

import pytest

from quran_mcp.client import QuranClient
from quran_mcp.client_cache import (
    ClientCache,
    QuranConfig,
    config_fingerprint,
    create_quran_client,
)
from quran_mcp.environments import QuranEnvironment
from quran_mcp.errors import ConfigurationError


class StubClient:
    def __init__(self, config):
        self.config = config
        self.token_cleared = False
        self.closed = False

    def clear_cached_token(self):
        self.token_cleared = True

    async def aclose(self):
        self.closed = True


@pytest.fixture
def built():
    """Records every client the cache's factory builds."""
    return []


@pytest.fixture
def cache(built):
    def _factory(config):
        client = StubClient(config)
        built.append(client)
        return client

    return ClientCache(factory=_factory)


def make_config(**overrides) -> QuranConfig:
    values = {"client_id": "client-a", "client_secret": "secret-a"}
    values.update(overrides)
    return QuranConfig(**values)


class TestQuranConfig:
    def test_defaults(self):
        config = make_config()

        assert config.environment is QuranEnvironment.PRODUCTION
        assert config.default_language == "en"

    @pytest.mark.parametrize("field", ["client_id", "client_secret"])
    def test_empty_credentials_are_rejected(self, field):
        with pytest.raises(ConfigurationError):
            make_config(**{field: ""})

    def test_secret_is_hidden_from_repr(self):
        assert "secret-a" not in repr(make_config())

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("pre-production", QuranEnvironment.PRE_PRODUCTION),
            (" PRE-PRODUCTION ", QuranEnvironment.PRE_PRODUCTION),
            ("production", QuranEnvironment.PRODUCTION),
            ("staging", QuranEnvironment.PRODUCTION),
            (None, QuranEnvironment.PRODUCTION),
        ],
    )
    def test_environment_is_normalized(self, value, expected):
        assert make_config(environment=value).environment is expected


class TestFingerprint:
    def test_fingerprint_is_id_and_environment(self):
        config = make_config(environment=QuranEnvironment.PRE_PRODUCTION)

        assert config_fingerprint(config) == "client-a:pre-production"

    def test_missing_environment_counts_as_production(self):
        assert config_fingerprint(make_config(environment=None)) == config_fingerprint(
            make_config(environment=QuranEnvironment.PRODUCTION)
        )

    @pytest.mark.parametrize(
        "environment, expected",
        [("pre-production", "a:pre-production"), ("staging", "a:production")],
    )
    def test_environment_given_as_text(self, environment, expected):
        config = QuranConfig("a", "s", environment=environment)

        assert config_fingerprint(config) == expected

    def test_secret_and_language_are_not_part_of_fingerprint(self):
        assert config_fingerprint(make_config()) == config_fingerprint(
            make_config(client_secret="rotated", default_language="ur")
        )


class TestCreateQuranClient:
    def test_builds_unauthenticated_client_for_environment(self):
        client = create_quran_client(make_config(environment=QuranEnvironment.PRE_PRODUCTION))

        assert isinstance(client, QuranClient)
        assert client.content_base_url == "https://apis-prelive.quran.foundation"
        assert client.auth_base_url == "https://prelive-oauth2.quran.foundation"
        assert client.client_id == "client-a"
        assert client.is_authenticated is False

    def test_each_call_yields_a_new_client(self):
        config = make_config()

        assert create_quran_client(config) is not create_quran_client(config)

    def test_default_language_is_passed_through(self):
        client = create_quran_client(make_config(default_language="ur"))

        assert client.default_language == "ur"


class TestClientCache:
    def test_same_config_returns_same_instance(self, cache, built):
        config = make_config()

        first = cache.get(config)
        second = cache.get(config)

        assert first is second
        assert len(built) == 1

    def test_equivalent_configs_share_instance(self, cache, built):
        """Secret and language differences don't trigger a rebuild."""
        first = cache.get(make_config())
        second = cache.get(make_config(client_secret="rotated", default_language="fr"))

        assert first is second
        assert len(built) == 1

    def test_different_client_id_builds_new_instance(self, cache, built):
        first = cache.get(make_config())
        second = cache.get(make_config(client_id="client-b"))

        assert first is not second
        assert len(built) == 2
        assert cache.fingerprint == "client-b:production"

    def test_different_environment_builds_new_instance(self, cache):
        first = cache.get(make_config())
        second = cache.get(make_config(environment=QuranEnvironment.PRE_PRODUCTION))

        assert first is not second

    def test_switching_back_rebuilds_again(self, cache, built):
        """Only one entry is held: A, B, A builds three clients."""
        cache.get(make_config())
        cache.get(make_config(client_id="client-b"))
        cache.get(make_config())

        assert len(built) == 3

    def test_invalidate_forces_new_instance(self, cache):
        config = make_config()
        before = cache.get(config)

        cache.invalidate()
        after = cache.get(config)

        assert after is not before

    def test_invalidate_clears_token_and_entry(self, cache):
        client = cache.get(make_config())

        cache.invalidate()

        assert client.token_cleared is True
        assert cache.fingerprint is None

    def test_invalidate_on_empty_cache_is_a_no_op(self, cache, built):
        cache.invalidate()

        assert cache.fingerprint is None
        assert built == []

    def test_default_factory_builds_real_clients(self):
        cache = ClientCache()

        client = cache.get(make_config())

        assert isinstance(client, QuranClient)
        assert cache.get(make_config()) is client

    def test_environment_given_as_text_shares_instance_with_enum(self, cache, built):
        first = cache.get(make_config(environment="pre-production"))
        second = cache.get(make_config(environment=QuranEnvironment.PRE_PRODUCTION))

        assert first is second
        assert len(built) == 1
        assert cache.fingerprint == "client-a:pre-production"

    async def test_aclose_closes_held_client(self, cache):
        client = cache.get(make_config())

        await cache.aclose()

        assert client.closed is True
        assert cache.fingerprint is None

    async def test_aclose_on_empty_cache_is_a_no_op(self, cache, built):
        await cache.aclose()

        assert cache.fingerprint is None
        assert built == []
