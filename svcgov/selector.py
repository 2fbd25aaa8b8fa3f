"""Strategies for choosing one server from the available candidates."""

from __future__ import annotations

import abc
import math
import random
import re
import socket
import struct
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import unquote_plus

from .hashing import ConsistentHash, distance, gen_key
from .modes import SelectMode
from .weighted import Weighted, calculate_weight, next_weighted

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_INTEGER = re.compile(r"[+-]?[0-9]+")
_PING_FAILED_MS = 1000
_PING_COUNT = 3
_PING_TIMEOUT = 3.0


def _parse_query(query: str) -> Optional[dict[str, str]]:
    """Parse ``a=1&b=2`` into the first value of each key, or None if malformed."""
    values: dict[str, str] = {}
    for piece in query.split("&"):
        if not piece:
            continue
        if ";" in piece:
            return None
        key, _, value = piece.partition("=")
        if _BAD_ESCAPE.search(key) or _BAD_ESCAPE.search(value):
            return None
        values.setdefault(unquote_plus(key), unquote_plus(value))
    return values


class Selector(abc.ABC):
    """Selects one server address from the candidates."""

    @abc.abstractmethod
    def select(self, service_path: str, service_method: str, args: Any) -> str:
        """Return the chosen server, or an empty string when there is none."""

    @abc.abstractmethod
    def update_server(self, servers: Mapping[str, str]) -> None:
        """Replace the candidates with ``servers`` (address to metadata)."""


class RandomSelector(Selector):
    """Picks a server uniformly at random."""

    def __init__(self, servers: Mapping[str, str]) -> None:
        self.servers = list(servers)

    def select(self, service_path: str, service_method: str, args: Any) -> str:
        if not self.servers:
            return ""
        return random.choice(self.servers)

    def update_server(self, servers: Mapping[str, str]) -> None:
        self.servers = list(servers)


class RoundRobinSelector(Selector):
    """Cycles through the servers in turn."""

    def __init__(self, servers: Mapping[str, str]) -> None:
        self.servers = list(servers)
        self._next = 0

    def select(self, service_path: str, service_method: str, args: Any) -> str:
        if not self.servers:
            return ""
        index = self._next % len(self.servers)
        self._next = index + 1
        return self.servers[index]

    def update_server(self, servers: Mapping[str, str]) -> None:
        self.servers = list(servers)


def _create_weighted(servers: Mapping[str, str]) -> list[Weighted]:
    result = []
    for server, metadata in servers.items():
        w = Weighted(server=server, weight=1, effective_weight=1)
        values = _parse_query(metadata)
        if values is not None:
            raw = values.get("weight", "")
            if raw and _INTEGER.fullmatch(raw):
                w.weight = w.effective_weight = int(raw)
        result.append(w)
    return result


class WeightedRoundRobinSelector(Selector):
    """Smooth weighted round robin using the ``weight`` field of the metadata."""

    def __init__(self, servers: Mapping[str, str]) -> None:
        self.servers = _create_weighted(servers)

    def select(self, service_path: str, service_method: str, args: Any) -> str:
        if not self.servers:
            return ""
        best = next_weighted(self.servers)
        return best.server if best is not None else ""

    def update_server(self, servers: Mapping[str, str]) -> None:
        self.servers = _create_weighted(servers)


def _split_host(address: str) -> str:
    host, sep, _ = address.rpartition(":")
    if not sep:
        return ""
    return host[1:-1] if host.startswith("[") and host.endswith("]") else host


def _icmp_checksum(data: bytes) -> int:
    if len(data) % 2:
        data += b"\0"
    total = sum(struct.unpack(f"!{len(data) // 2}H", data))
    total = (total >> 16) + (total & 0xFFFF)
    total += total >> 16
    return ~total & 0xFFFF


def _ping(host: str) -> int:
    """Average ICMP echo round-trip in milliseconds; 1000 if the ping fails."""
    try:
        family, _, _, _, address = socket.getaddrinfo(host, None, type=socket.SOCK_DGRAM)[0]
    except (OSError, UnicodeError):
        return _PING_FAILED_MS
    if family == socket.AF_INET:
        proto, request_type, reply_type = socket.IPPROTO_ICMP, 8, 0
    elif family == socket.AF_INET6:
        proto, request_type, reply_type = socket.IPPROTO_ICMPV6, 128, 129
    else:
        return _PING_FAILED_MS

    rtts: list[float] = []
    deadline = time.monotonic() + _PING_TIMEOUT
    try:
        with socket.socket(family, socket.SOCK_DGRAM, proto) as sock:
            for seq in range(_PING_COUNT):
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                header = struct.pack("!BBHHH", request_type, 0, 0, 0, seq)
                payload = b"svcgov-ping"
                checksum = _icmp_checksum(header + payload)
                packet = struct.pack("!BBHHH", request_type, 0, checksum, 0, seq) + payload
                start = time.monotonic()
                sock.sendto(packet, address)
                while True:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise TimeoutError
                    sock.settimeout(remaining)
                    data, _ = sock.recvfrom(1024)
                    if len(data) >= 8 and data[0] == reply_type:
                        if struct.unpack("!H", data[6:8])[0] == seq:
                            rtts.append(time.monotonic() - start)
                            break
    except OSError:
        pass
    if not rtts:
        return _PING_FAILED_MS
    return int(sum(rtts) / len(rtts) * 1000)


def _create_icmp_weighted(servers: Mapping[str, str]) -> list[Weighted]:
    result = []
    for server in servers:
        _, _, address = server.partition("@")
        weight = calculate_weight(_ping(_split_host(address or server)))
        result.append(Weighted(server=server, weight=weight, effective_weight=weight))
    return result


class _WeightedICMPSelector(Selector):
    """Weighted round robin where weights come from ping round-trip times."""

    def __init__(self, servers: Mapping[str, str]) -> None:
        self.servers = _create_icmp_weighted(servers)

    def select(self, service_path: str, service_method: str, args: Any) -> str:
        if not self.servers:
            return ""
        best = next_weighted(self.servers)
        return best.server if best is not None else ""

    def update_server(self, servers: Mapping[str, str]) -> None:
        self.servers = _create_icmp_weighted(servers)


@dataclass
class _GeoServer:
    server: str
    latitude: float
    longitude: float


def _create_geo_servers(servers: Mapping[str, str]) -> list[_GeoServer]:
    result = []
    for server, metadata in servers.items():
        values = _parse_query(metadata)
        if values is None:
            continue
        lat_text = values.get("latitude", "")
        lon_text = values.get("longitude", "")
        if not lat_text or not lon_text:
            continue
        try:
            lat, lon = float(lat_text), float(lon_text)
        except ValueError:
            continue
        result.append(_GeoServer(server, lat, lon))
    return result


class GeoSelector(Selector):
    """Picks the server closest to the client's location."""

    def __init__(self, servers: Mapping[str, str], latitude: float, longitude: float) -> None:
        self.servers = _create_geo_servers(servers)
        self.latitude = latitude
        self.longitude = longitude
        self._random = random.Random()

    def select(self, service_path: str, service_method: str, args: Any) -> str:
        if not self.servers:
            return ""
        closest: list[str] = []
        best = math.inf
        for gs in self.servers:
            d = distance(self.latitude, self.longitude, gs.latitude, gs.longitude)
            if d < best:
                closest, best = [gs.server], d
            elif d == best:
                closest.append(gs.server)
        if not closest:
            return ""
        if len(closest) == 1:
            return closest[0]
        return self._random.choice(closest)

    def update_server(self, servers: Mapping[str, str]) -> None:
        self.servers = _create_geo_servers(servers)


class ConsistentHashSelector(Selector):
    """Maps service path, method and arguments consistently onto a server."""

    def __init__(self, servers: Mapping[str, str]) -> None:
        self.ring = ConsistentHash()
        for server in servers:
            self.ring.add(server)
        self.servers = sorted(servers)

    def select(self, service_path: str, service_method: str, args: Any) -> str:
        if not self.servers:
            return ""
        selected = self.ring.get(gen_key(service_path, service_method, args))
        return selected if isinstance(selected, str) else ""

    def update_server(self, servers: Mapping[str, str]) -> None:
        for server in servers:
            self.ring.add(server)
        for server in self.servers:
            if server not in servers:
                self.ring.remove(server)
        self.servers = sorted(servers)


def new_selector(select_mode: int, servers: Mapping[str, str]) -> Optional[Selector]:
    """Build the selector for ``select_mode``; None when the user supplies one."""
    if select_mode == SelectMode.ROUND_ROBIN:
        return RoundRobinSelector(servers)
    if select_mode == SelectMode.WEIGHTED_ROUND_ROBIN:
        return WeightedRoundRobinSelector(servers)
    if select_mode == SelectMode.WEIGHTED_ICMP:
        return _WeightedICMPSelector(servers)
    if select_mode == SelectMode.CONSISTENT_HASH:
        return ConsistentHashSelector(servers)
    if select_mode == SelectMode.SELECT_BY_USER:
        return None
    return RandomSelector(servers)