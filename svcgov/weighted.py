"""Smooth weighted round robin and ping-based weights."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass
class Weighted:
    """A server together with its weights for smooth weighted round robin."""

    server: str
    weight: int = 1
    current_weight: int = 0
    effective_weight: int = 1


def next_weighted(servers: Iterable[Optional[Weighted]]) -> Optional[Weighted]:
    """Pick the next server by smooth weighted round robin.

    Updates the weights in place; entries that are None are skipped.
    Returns None when there is nothing to pick.
    """
    total = 0
    best: Optional[Weighted] = None
    for w in servers:
        if w is None:
            continue
        w.current_weight += w.effective_weight
        total += w.effective_weight
        if w.effective_weight < w.weight:
            w.effective_weight += 1
        if best is None or w.current_weight > best.current_weight:
            best = w

    if best is None:
        return None
    best.current_weight -= total
    return best


def calculate_weight(rtt: int) -> int:
    """Turn a ping round-trip time in milliseconds into a selection weight.

    Up to 10 ms gives 191, up to 200 ms gives ``201 - rtt``, below 1000 ms
    gives 1, and anything else (including negative times) gives 0.
    """
    if 0 <= rtt <= 10:
        return 191
    if 10 < rtt <= 200:
        return 201 - rtt
    if 100 < rtt < 1000:
        return 1
    return 0