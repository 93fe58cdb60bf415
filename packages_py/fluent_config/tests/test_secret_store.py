"""
Tests for SecretStoreSource and HttpSecretClient.
"""
import threading
from unittest.mock import patch

import httpx
import pytest
import respx

from fluent_config import (
    HttpSecretClient,
    SecretCache,
    SecretClient,
    SecretStoreOptions,
    SecretStoreSource,
    SourceLoadError,
)


class FakeClient(SecretClient):
    def __init__(self, secrets, failing=(), slow=()):
        self.secrets = dict(secrets)
        self.failing = set(failing)
        self.slow = set(slow)
        self.release = threading.Event()
        self.list_calls = 0
        self.get_calls = []
        self.closed = False

    @property
    def location(self):
        return "vault.test"

    def list_secret_names(self):
        self.list_calls += 1
        return list(self.secrets)

    def get_secret(self, name, version=None):
        self.get_calls.append((name, version))
        if name in self.failing:
            raise SourceLoadError(f"access denied for {name}")
        if name in self.slow:
            self.release.wait(5)
        return self.secrets.get(name)

    def close(self):
        self.closed = True


class TestSecretStoreSource:
    def test_maps_secret_names_to_keys(self):
        client = FakeClient({"Database--Password": "pw", "ApiKey": "k"})
        source = SecretStoreSource(client)
        assert source.name == "SecretStore(vault.test)"
        assert source.priority == 200
        assert source.load().unwrap() == {"Database:Password": "pw", "ApiKey": "k"}

    def test_second_load_uses_loaded_values(self):
        client = FakeClient({"A": "1"})
        source = SecretStoreSource(client)
        source.load()
        source.load()
        assert client.list_calls == 1

    def test_reload_fetches_again(self):
        client = FakeClient({"A": "1"})
        source = SecretStoreSource(client)
        source.load()
        client.secrets["A"] = "2"
        assert source.reload().unwrap() == {"A": "2"}
        assert client.list_calls == 2

    def test_failures_are_collected_and_tolerated(self):
        client = FakeClient({"A": "1", "B": "2", "C": ""}, failing={"B"})
        source = SecretStoreSource(client)
        assert source.load().unwrap() == {"A": "1"}
        assert sorted(source.load_errors) == ["Secret 'C' value is null or empty", "access denied for B"]

    def test_failures_fail_load_when_not_tolerated(self):
        client = FakeClient({"A": "1", "B": "2"}, failing={"B"})
        source = SecretStoreSource(client, SecretStoreOptions(continue_on_secret_failure=False))
        assert source.load().errors == ("access denied for B",)

    def test_listing_failure(self):
        client = FakeClient({})
        with patch.object(client, "list_secret_names", side_effect=SourceLoadError("unreachable")):
            result = SecretStoreSource(client).load()
        assert result.errors == ("Failed to load secrets from 'vault.test': unreachable",)

    def test_prefix_filter_and_version(self):
        client = FakeClient({"app--Port": "80", "APP--Host": "h", "other--X": "x"})
        options = SecretStoreOptions(secret_name_prefix="app--", secret_version="v2")
        values = SecretStoreSource(client, options).load().unwrap()
        assert values == {"app:Port": "80", "APP:Host": "h"}
        assert all(version == "v2" for _, version in client.get_calls)

    def test_custom_key_mapper(self):
        client = FakeClient({"db-host": "h"})
        options = SecretStoreOptions(key_mapper=lambda name: name.replace("-", ":"))
        assert SecretStoreSource(client, options).load().unwrap() == {"db:host": "h"}

    def test_fetch_timeout_is_a_secret_failure(self):
        client = FakeClient({"A": "1", "Slow": "2"}, slow={"Slow"})
        options = SecretStoreOptions(operation_timeout=0.2)
        try:
            values = SecretStoreSource(client, options).load().unwrap()
        finally:
            client.release.set()
        assert values == {"A": "1"}

    def test_get_secret_uses_cache(self):
        client = FakeClient({"A": "1"})
        source = SecretStoreSource(client)
        assert source.get_secret("A") == "1"
        assert source.get_secret("A") == "1"
        assert len(client.get_calls) == 1
        assert source.cache_statistics.hits == 1

        source.clear_cache()
        assert source.get_secret("A") == "1"
        assert len(client.get_calls) == 2

    def test_get_value_reads_loaded_keys(self):
        client = FakeClient({"Api--Key": "k"})
        source = SecretStoreSource(client, SecretStoreOptions(secret_version="v1"))
        source.load()
        assert source.get_value("api:key").unwrap() == "k"
        assert source.get_value("Api:Other").is_none

    def test_close(self):
        client = FakeClient({"A": "1"})
        with SecretStoreSource(client) as source:
            source.load()
        assert client.closed
        assert source.load().is_failure


class TestSecretCache:
    def test_expiry(self):
        cache = SecretCache(ttl=10)
        with patch("fluent_config.sources.secret_store.time.monotonic", return_value=100.0):
            cache.set("k", "v")
        with patch("fluent_config.sources.secret_store.time.monotonic", return_value=105.0):
            assert cache.get("k") == "v"
        with patch("fluent_config.sources.secret_store.time.monotonic", return_value=111.0):
            assert cache.get("k") is None

        stats = cache.statistics()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.expired == 1
        assert stats.entries == 0

    def test_zero_ttl_disables_caching(self):
        cache = SecretCache(ttl=0)
        cache.set("k", "v")
        assert len(cache) == 0


def test_options_validation():
    with pytest.raises(ValueError):
        SecretStoreOptions(cache_ttl=-1)
    with pytest.raises(ValueError):
        SecretStoreOptions(operation_timeout=0)


class TestHttpSecretClient:
    BASE = "https://secrets.example.com"

    def test_list_and_get(self):
        client = HttpSecretClient(self.BASE, token="t0ken")
        with respx.mock(base_url=self.BASE) as mock:
            listing = mock.get("/secrets").respond(200, json={"secrets": ["Db--Host", {"name": "Off", "enabled": False}]})
            mock.get("/secrets/Db--Host").respond(200, json={"value": "db"})

            assert client.list_secret_names() == ["Db--Host"]
            assert client.get_secret("Db--Host") == "db"
            assert listing.calls.last.request.headers["Authorization"] == "Bearer t0ken"
        client.close()

    def test_missing_secret_is_none(self):
        client = HttpSecretClient(self.BASE)
        with respx.mock(base_url=self.BASE) as mock:
            mock.get("/secrets/nope").respond(404)
            assert client.get_secret("nope") is None

    def test_version_is_sent_as_query(self):
        client = HttpSecretClient(self.BASE)
        with respx.mock(base_url=self.BASE) as mock:
            route = mock.get("/secrets/A").respond(200, json={"value": "1"})
            client.get_secret("A", version="v3")
            assert route.calls.last.request.url.params["version"] == "v3"

    def test_server_error_raises_source_load_error(self):
        client = HttpSecretClient(self.BASE)
        with respx.mock(base_url=self.BASE) as mock:
            mock.get("/secrets").respond(500)
            with pytest.raises(SourceLoadError):
                client.list_secret_names()

    def test_transport_error_raises_source_load_error(self):
        client = HttpSecretClient(self.BASE)
        with respx.mock(base_url=self.BASE) as mock:
            mock.get("/secrets/A").mock(side_effect=httpx.ConnectError("refused"))
            with pytest.raises(SourceLoadError):
                client.get_secret("A")

    def test_source_over_http(self):
        client = HttpSecretClient(self.BASE)
        with respx.mock(base_url=self.BASE) as mock:
            mock.get("/secrets").respond(200, json=["Api--Key"])
            mock.get("/secrets/Api--Key").respond(200, json={"value": "sk-123"})
            source = SecretStoreSource(client)
            assert source.name == "SecretStore(secrets.example.com)"
            assert source.load().unwrap() == {"Api:Key": "sk-123"}
