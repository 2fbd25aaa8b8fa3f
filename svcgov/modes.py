"""Failure-handling and server-selection modes."""

from __future__ import annotations

import enum


class FailMode(enum.IntEnum):
    """How a client reacts when a call to a service fails."""

    FAILOVER = 0
    """Select another server automatically."""
    FAILFAST = 1
    """Return the error immediately."""
    FAILTRY = 2
    """Use the current server again."""
    FAILBACKUP = 3
    """Send a backup request if the first one is slow; use the fastest answer."""

    def __str__(self) -> str:
        return fail_mode_string(self)


class SelectMode(enum.IntEnum):
    """The algorithm used to pick a server from the candidates."""

    RANDOM_SELECT = 0
    ROUND_ROBIN = 1
    WEIGHTED_ROUND_ROBIN = 2
    WEIGHTED_ICMP = 3
    CONSISTENT_HASH = 4
    CLOSEST = 5
    SELECT_BY_USER = 1000
    """Selection is provided by the user; not one of the named algorithms."""

    def __str__(self) -> str:
        return select_mode_string(self)


_FAIL_MODE_NAMES = {
    0: "Failover",
    1: "Failfast",
    2: "Failtry",
    3: "Failbackup",
}

_SELECT_MODE_NAMES = {
    0: "RandomSelect",
    1: "RoundRobin",
    2: "WeightedRoundRobin",
    3: "WeightedICMP",
    4: "ConsistentHash",
    5: "Closest",
}

_FAIL_MODE_BY_NAME = {name: FailMode(value) for value, name in _FAIL_MODE_NAMES.items()}
_SELECT_MODE_BY_NAME = {
    name: SelectMode(value) for value, name in _SELECT_MODE_NAMES.items()
}


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def fail_mode_string(value: int) -> str:
    """Return the canonical name of a fail mode, or ``FailMode(n)`` if unknown."""
    number = int(value)
    return _FAIL_MODE_NAMES.get(number, f"FailMode({number})")


def select_mode_string(value: int) -> str:
    """Return the canonical name of a select mode, or ``SelectMode(n)`` if unknown."""
    number = int(value)
    return _SELECT_MODE_NAMES.get(number, f"SelectMode({number})")


def parse_fail_mode(name: str) -> FailMode:
    """Look up a fail mode by its canonical name; raise ValueError if unknown."""
    try:
        return _FAIL_MODE_BY_NAME[name]
    except KeyError:
        raise ValueError(f"{name} does not belong to FailMode values") from None


def parse_select_mode(name: str) -> SelectMode:
    """Look up a select mode by its canonical name; raise ValueError if unknown."""
    try:
        return _SELECT_MODE_BY_NAME[name]
    except KeyError:
        raise ValueError(f"{name} does not belong to SelectMode values") from None


def is_fail_mode(value: object) -> bool:
    """Tell whether the value is one of the defined fail modes."""
    return _is_int(value) and int(value) in _FAIL_MODE_NAMES


def is_select_mode(value: object) -> bool:
    """Tell whether the value is one of the named selection algorithms."""
    return _is_int(value) and int(value) in _SELECT_MODE_NAMES