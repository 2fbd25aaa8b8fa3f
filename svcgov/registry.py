"""Per-network builders that create and cache clients themselves."""

from __future__ import annotations

import abc
import threading
from typing import Any, Optional


class CacheClientBuilder(abc.ABC):
    """Creates, caches and looks up clients for one network type."""

    @abc.abstractmethod
    def set_cached_client(self, client: Any, key: str, service_path: str, service_method: str) -> None:
        """Cache ``client`` for the server ``key``."""

    @abc.abstractmethod
    def find_cached_client(self, key: str, service_path: str, service_method: str) -> Any:
        """Return the cached client for ``key``, or None."""

    @abc.abstractmethod
    def delete_cached_client(self, client: Any, key: str, service_path: str, service_method: str) -> None:
        """Forget the cached ``client`` for ``key``."""

    @abc.abstractmethod
    def generate_client(self, key: str, service_path: str, service_method: str) -> Any:
        """Create a new client for ``key``; raise on failure."""


_lock = threading.RLock()
_builders: dict[str, CacheClientBuilder] = {}


def register_cache_client_builder(network: str, builder: CacheClientBuilder) -> None:
    """Use ``builder`` for servers on ``network``, replacing any earlier one."""
    with _lock:
        _builders[network] = builder


def get_cache_client_builder(network: str) -> Optional[CacheClientBuilder]:
    """Return the builder registered for ``network``, or None."""
    with _lock:
        return _builders.get(network)