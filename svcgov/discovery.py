"""Service discovery: where the servers of a service can be found."""

from __future__ import annotations

import abc
import json
import logging
import os
import queue
import socket
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

log = logging.getLogger(__name__)

WATCH_BUFFER = 10
"""How many server-list updates a watcher queue holds before updates wait."""

_LATE_DELIVERY_TIMEOUT = 60.0
_DEFAULT_CACHE_FILE = os.path.join(".cache", "discovery.json")

FilterFn = Callable[[Any], bool]
Watcher = "queue.Queue[Optional[list[Any]]]"


@dataclass(frozen=True)
class _Pair:
    """A server address (``key``) with its metadata (``value``)."""

    key: str
    value: str = ""


def _put_late(watcher: queue.Queue, pairs: list[Any]) -> None:
    try:
        watcher.put(pairs, timeout=_LATE_DELIVERY_TIMEOUT)
    except queue.Full:
        log.warning("chan is full and new change has been dropped")


def _publish(watchers: Iterable[queue.Queue], pairs: list[Any]) -> None:
    """Hand ``pairs`` to every watcher without blocking the caller."""
    for watcher in watchers:
        try:
            watcher.put_nowait(list(pairs))
        except queue.Full:
            threading.Thread(
                target=_put_late, args=(watcher, list(pairs)), daemon=True
            ).start()


class ServiceDiscovery(abc.ABC):
    """Source of the servers that provide a service.

    Servers are objects with a ``key`` (the address, such as
    ``tcp@127.0.0.1:8972``) and a ``value`` (URL-encoded metadata).
    A watcher is a queue that receives each new server list; ``None``
    on a watcher queue means that it has been closed.
    """

    @abc.abstractmethod
    def get_services(self) -> list[Any]:
        """Return all servers currently known."""

    @abc.abstractmethod
    def watch_service(self) -> Optional[queue.Queue]:
        """Return a queue receiving server-list changes, or None if there are none."""

    @abc.abstractmethod
    def remove_watcher(self, watcher: queue.Queue) -> None:
        """Stop sending changes to ``watcher``."""

    @abc.abstractmethod
    def clone(self, service_path: str) -> "ServiceDiscovery":
        """Return a discovery for another service path."""

    @abc.abstractmethod
    def set_filter(self, filter_fn: FilterFn) -> None:
        """Keep only servers for which ``filter_fn`` returns True."""

    @abc.abstractmethod
    def close(self) -> None:
        """Release the discovery's resources."""


class _WatcherList:
    """Thread-safe list of watcher queues."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._watchers: list[queue.Queue] = []

    def new(self) -> queue.Queue:
        watcher: queue.Queue = queue.Queue(maxsize=WATCH_BUFFER)
        with self._lock:
            self._watchers.append(watcher)
        return watcher

    def remove(self, watcher: queue.Queue) -> None:
        with self._lock:
            self._watchers = [w for w in self._watchers if w is not watcher]

    def publish(self, pairs: list[Any]) -> None:
        with self._lock:
            _publish(self._watchers, pairs)

    def __len__(self) -> int:
        with self._lock:
            return len(self._watchers)


class Peer2PeerDiscovery(ServiceDiscovery):
    """Always returns the one configured server."""

    def __init__(self, server: str, metadata: str) -> None:
        self.server = server
        self.metadata = metadata

    def get_services(self) -> list[Any]:
        return [_Pair(self.server, self.metadata)]

    def watch_service(self) -> Optional[queue.Queue]:
        return None

    def remove_watcher(self, watcher: queue.Queue) -> None:
        pass

    def clone(self, service_path: str) -> ServiceDiscovery:
        return self

    def set_filter(self, filter_fn: FilterFn) -> None:
        pass

    def close(self) -> None:
        pass


class MultipleServersDiscovery(ServiceDiscovery):
    """A fixed list of servers that can be replaced at run time."""

    def __init__(self, pairs: Iterable[Any]) -> None:
        self._pairs = list(pairs)
        self._pairs_lock = threading.Lock()
        self._watchers = _WatcherList()

    def get_services(self) -> list[Any]:
        with self._pairs_lock:
            return list(self._pairs)

    def watch_service(self) -> Optional[queue.Queue]:
        return self._watchers.new()

    def remove_watcher(self, watcher: queue.Queue) -> None:
        self._watchers.remove(watcher)

    def clone(self, service_path: str) -> ServiceDiscovery:
        return self

    def set_filter(self, filter_fn: FilterFn) -> None:
        pass

    def update(self, pairs: Iterable[Any]) -> None:
        """Replace the servers and tell every watcher."""
        pairs = list(pairs)
        self._watchers.publish(pairs)
        with self._pairs_lock:
            self._pairs = pairs

    def close(self) -> None:
        pass


def _pairs_to_json(pairs: Iterable[Any]) -> str:
    return json.dumps([{"Key": p.key, "Value": p.value} for p in pairs])


def _pairs_from_json(text: str) -> list[Any]:
    data = json.loads(text)
    if not isinstance(data, list):
        return []
    return [
        _Pair(str(item.get("Key", "")), str(item.get("Value", "")))
        for item in data
        if isinstance(item, dict)
    ]


class CachedServiceDiscovery(ServiceDiscovery):
    """Wraps a discovery and keeps its largest server list in a file.

    When the wrapped discovery reports no more than ``threshold`` servers
    (for example because the registry is unreachable), the cached list is
    returned instead.
    """

    def __init__(self, threshold: int, cached_file: str, discovery: ServiceDiscovery) -> None:
        self.threshold = threshold
        self.cached_file = cached_file or _DEFAULT_CACHE_FILE
        self.discovery = discovery
        self._cached: list[Any] = []
        self._lock = threading.Lock()
        self._origins: dict[int, tuple[queue.Queue, queue.Queue]] = {}
        directory = os.path.dirname(self.cached_file)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def get_services(self) -> list[Any]:
        pairs = self.discovery.get_services()
        with self._lock:
            if len(pairs) > self.threshold:
                # Comparing lengths only; comparing contents would cost a file read.
                if len(pairs) > len(self._cached):
                    self._cached = list(pairs)
                    self._store(pairs)
                return pairs
            if not self._cached:
                self._cached = self._load()
            return list(self._cached)

    def watch_service(self) -> Optional[queue.Queue]:
        origin = self.discovery.watch_service()
        if origin is None:
            return None
        watcher: queue.Queue = queue.Queue(maxsize=WATCH_BUFFER)
        with self._lock:
            self._origins[id(watcher)] = (watcher, origin)
        threading.Thread(target=self._forward, args=(origin, watcher), daemon=True).start()
        return watcher

    def remove_watcher(self, watcher: queue.Queue) -> None:
        with self._lock:
            entry = self._origins.pop(id(watcher), None)
        if entry is None:
            return
        origin = entry[1]
        self.discovery.remove_watcher(origin)
        try:
            origin.put_nowait(None)
        except queue.Full:
            pass

    def clone(self, service_path: str) -> ServiceDiscovery:
        return self.discovery.clone(service_path)

    def set_filter(self, filter_fn: FilterFn) -> None:
        self.discovery.set_filter(filter_fn)

    def close(self) -> None:
        self.discovery.close()

    def _forward(self, origin: queue.Queue, watcher: queue.Queue) -> None:
        while True:
            pairs = origin.get()
            if pairs is None:
                watcher.put(None)
                return
            with self._lock:
                if len(pairs) > len(self._cached):
                    self._cached = list(pairs)
                    self._store(pairs)
            watcher.put(pairs)

    def _store(self, pairs: Iterable[Any]) -> None:
        try:
            with open(self.cached_file, "w", encoding="utf-8") as fh:
                fh.write(_pairs_to_json(pairs))
        except OSError as exc:
            log.warning("failed to store cached services: %s", exc)

    def _load(self) -> list[Any]:
        try:
            with open(self.cached_file, encoding="utf-8") as fh:
                text = fh.read()
        except OSError:
            return []
        if not text:
            return []
        try:
            return _pairs_from_json(text)
        except (ValueError, AttributeError):
            return []


class DNSDiscovery(ServiceDiscovery):
    """Servers are the A/AAAA records of a domain, re-resolved every ``interval`` seconds."""

    def __init__(self, domain: str, network: str, port: int, interval: float) -> None:
        self.domain = domain
        self.network = network
        self.port = port
        self.interval = interval
        self._filter: Optional[FilterFn] = None
        self._pairs: list[Any] = []
        self._pairs_lock = threading.Lock()
        self._watchers = _WatcherList()
        self._stop = threading.Event()
        self.lookup()
        threading.Thread(target=self._watch, daemon=True).start()

    def get_services(self) -> list[Any]:
        with self._pairs_lock:
            return list(self._pairs)

    def watch_service(self) -> Optional[queue.Queue]:
        return self._watchers.new()

    def remove_watcher(self, watcher: queue.Queue) -> None:
        self._watchers.remove(watcher)

    def clone(self, service_path: str) -> ServiceDiscovery:
        return DNSDiscovery(self.domain, self.network, self.port, self.interval)

    def set_filter(self, filter_fn: FilterFn) -> None:
        self._filter = filter_fn

    def lookup(self) -> None:
        """Resolve the domain now and publish the result; keep the old list on failure."""
        try:
            infos = socket.getaddrinfo(self.domain, None, type=socket.SOCK_STREAM)
        except (OSError, UnicodeError) as exc:
            log.error("failed to lookup %s: %s", self.domain, exc)
            return

        ips = list(dict.fromkeys(str(info[4][0]) for info in infos))
        pairs = []
        for ip in ips:
            pair = _Pair(f"{self.network}@{ip}:{self.port}")
            if self._filter is not None and not self._filter(pair):
                continue
            pairs.append(pair)
        pairs.sort(key=lambda p: p.key)

        with self._pairs_lock:
            self._pairs = pairs
        self._watchers.publish(pairs)

    def close(self) -> None:
        self._stop.set()

    def _watch(self) -> None:
        while not self._stop.wait(self.interval):
            self.lookup()