"""Hashing and distance helpers used when choosing servers."""

from __future__ import annotations

import math
from typing import Any, Iterable

_MASK64 = (1 << 64) - 1
_FNV64_OFFSET = 14695981039346656037
_FNV64_PRIME = 1099511628211
_EARTH_RADIUS_M = 6378100.0


def jump_hash(key: int, buckets: int) -> int:
    """Map ``key`` consistently onto a bucket in ``[0, buckets)``.

    A bucket count below 1 is treated as 1.
    """
    if buckets <= 0:
        buckets = 1
    key &= _MASK64
    b = j = 0
    while j < buckets:
        b = j
        key = (key * 2862933555777941757 + 1) & _MASK64
        j = int(float(b + 1) * (float(1 << 31) / float((key >> 33) + 1)))
    return b


def hash_string(s: str) -> int:
    """Return the 64-bit FNV-1a hash of the UTF-8 encoding of ``s``."""
    h = _FNV64_OFFSET
    for byte in s.encode("utf-8"):
        h ^= byte
        h = (h * _FNV64_PRIME) & _MASK64
    return h


def _to_string(obj: Any) -> str:
    if obj is None:
        return "<nil>"
    if isinstance(obj, bool):
        return "true" if obj else "false"
    return str(obj)


def gen_key(*args: Any) -> int:
    """Hash the arguments joined as ``/a/b/...`` into a 64-bit key."""
    return hash_string("".join("/" + _to_string(arg) for arg in args))


def jump_consistent_hash(length: int, *args: Any) -> int:
    """Choose an index in ``[0, length)`` from the given arguments."""
    return jump_hash(gen_key(*args), length)


def _hsin(theta: float) -> float:
    return math.sin(theta / 2) ** 2


def distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres between two points given in degrees."""
    la1, lo1, la2, lo2 = (math.radians(v) for v in (lat1, lon1, lat2, lon2))
    h = _hsin(la2 - la1) + math.cos(la1) * math.cos(la2) * _hsin(lo2 - lo1)
    return 2 * _EARTH_RADIUS_M * math.asin(math.sqrt(h))


class ConsistentHash:
    """Jump-hash ring that keeps most keys in place when nodes come and go.

    Nodes keep a stable slot in a sparse table; a key landing on an empty
    slot falls back to a compact table of the live nodes.
    """

    def __init__(self) -> None:
        self._loose: list[str | None] = []
        self._loose_index: dict[str, int] = {}
        self._free: list[int] = []
        self._compact: list[str] = []
        self._compact_index: dict[str, int] = {}

    def add(self, node: str) -> None:
        """Add a node; adding a node already present does nothing."""
        if node in self._compact_index:
            return
        if self._free:
            slot = min(self._free)
            self._free.remove(slot)
            self._loose[slot] = node
        else:
            slot = len(self._loose)
            self._loose.append(node)
        self._loose_index[node] = slot
        self._compact_index[node] = len(self._compact)
        self._compact.append(node)

    def remove(self, node: str) -> None:
        """Remove a node; removing an unknown node does nothing."""
        if node not in self._compact_index:
            return
        slot = self._loose_index.pop(node)
        self._loose[slot] = None
        self._free.append(slot)
        while self._loose and self._loose[-1] is None:
            self._loose.pop()
            self._free.remove(len(self._loose))

        position = self._compact_index.pop(node)
        last = self._compact.pop()
        if last != node:
            self._compact[position] = last
            self._compact_index[last] = position

    def get(self, key: int) -> str | None:
        """Return the node for ``key``, or None if there are no nodes."""
        if not self._compact:
            return None
        node = self._loose[jump_hash(key, len(self._loose))]
        if node is not None:
            return node
        return self._compact[jump_hash(key, len(self._compact))]

    def all(self) -> list[str]:
        """Return all nodes currently in the ring."""
        return list(self._compact)

    def __len__(self) -> int:
        return len(self._compact)

    def __contains__(self, node: object) -> bool:
        return node in self._compact_index

    def __iter__(self) -> Iterable[str]:
        return iter(self.all())