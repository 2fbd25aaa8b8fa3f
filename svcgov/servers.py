"""Server entries reported by discovery and helpers for working with them."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import MutableMapping, Optional
from urllib.parse import unquote_plus

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_DEFAULT_NETWORK = "tcp"


@dataclass
class KVPair:
    """A server address (``key``) with its URL-encoded metadata (``value``)."""

    key: str
    value: str = ""


def _parse_metadata(metadata: str) -> Optional[dict[str, str]]:
    """Parse ``a=1&b=2`` into the first value of each key, or None if malformed."""
    values: dict[str, str] = {}
    malformed = False
    for piece in metadata.split("&"):
        if not piece:
            continue
        if ";" in piece:
            malformed = True
            continue
        key, _, value = piece.partition("=")
        if _BAD_ESCAPE.search(key) or _BAD_ESCAPE.search(value):
            malformed = True
            continue
        values.setdefault(unquote_plus(key), unquote_plus(value))
    return None if malformed else values


def filter_by_state_and_group(group: str, servers: MutableMapping[str, str]) -> None:
    """Remove inactive servers, and those outside ``group``, from ``servers`` in place.

    ``servers`` maps addresses to metadata. A server is dropped when its
    metadata says ``state=inactive``, or when ``group`` is not empty and
    differs from the server's ``group``. Servers whose metadata cannot be
    parsed are left alone.
    """
    for address, metadata in list(servers.items()):
        values = _parse_metadata(metadata)
        if values is None:
            continue
        if values.get("state", "") == "inactive":
            servers.pop(address, None)
        if group and group != values.get("group", ""):
            servers.pop(address, None)


def split_network_and_address(server: str) -> tuple[str, str]:
    """Split ``network@address``; without a network part, the network is ``tcp``."""
    network, sep, address = server.partition("@")
    if not sep:
        return _DEFAULT_NETWORK, server
    return network, address