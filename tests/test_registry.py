import pytest

from svcgov.registry import (
    CacheClientBuilder,
    get_cache_client_builder,
    register_cache_client_builder,
)


class DictBuilder(CacheClientBuilder):
    def __init__(self):
        self.cache = {}

    def set_cached_client(self, client, key, service_path, service_method):
        self.cache[key] = client

    def find_cached_client(self, key, service_path, service_method):
        return self.cache.get(key)

    def delete_cached_client(self, client, key, service_path, service_method):
        if self.cache.get(key) is client:
            del self.cache[key]

    def generate_client(self, key, service_path, service_method):
        return ("client", key)


def test_builder_interface_is_abstract():
    with pytest.raises(TypeError):
        CacheClientBuilder()


def test_register_and_get():
    builder = DictBuilder()
    register_cache_client_builder("test-net-a", builder)
    assert get_cache_client_builder("test-net-a") is builder


def test_unknown_network_returns_none():
    assert get_cache_client_builder("test-net-unregistered") is None


def test_register_replaces_previous():
    first, second = DictBuilder(), DictBuilder()
    register_cache_client_builder("test-net-b", first)
    register_cache_client_builder("test-net-b", second)
    assert get_cache_client_builder("test-net-b") is second


def test_registered_builder_round_trip():
    register_cache_client_builder("test-net-c", DictBuilder())
    builder = get_cache_client_builder("test-net-c")
    client = builder.generate_client("test-net-c@host:1", "Arith", "Mul")
    builder.set_cached_client(client, "test-net-c@host:1", "Arith", "Mul")
    assert builder.find_cached_client("test-net-c@host:1", "Arith", "Mul") is client
    builder.delete_cached_client(client, "test-net-c@host:1", "Arith", "Mul")
    assert builder.find_cached_client("test-net-c@host:1", "Arith", "Mul") is None