# svcgov

Building blocks for the client side of an RPC system: choosing which
server handles a call, shielding callers from failing servers, and
keeping the list of servers current.

## Installation

```
pip install svcgov
```

The package has no runtime dependencies beyond the standard library.

## What is inside

- `svcgov.modes`: the `FailMode` enumeration (`FAILOVER`, `FAILFAST`,
  `FAILTRY`, `FAILBACKUP`) and the `SelectMode` enumeration
  (`RANDOM_SELECT`, `ROUND_ROBIN`, `WEIGHTED_ROUND_ROBIN`, `WEIGHTED_ICMP`,
  `CONSISTENT_HASH`, `CLOSEST`, `SELECT_BY_USER`). `fail_mode_string` and
  `select_mode_string` give the canonical names (such as `"Failover"` or
  `"RoundRobin"`, or `"FailMode(7)"` for an unknown value);
  `parse_fail_mode` and `parse_select_mode` go the other way and raise
  `ValueError` for an unknown name; `is_fail_mode` and `is_select_mode`
  check a value.
- `svcgov.breaker`: the `Breaker` interface and `ConsecCircuitBreaker`,
  which opens after `failure_threshold` failures within `window` seconds.
  `call(fn, timeout)` raises `BreakerOpenError` while the breaker is open
  and `BreakerTimeoutError` when `fn` takes longer than `timeout` seconds;
  exceptions from `fn` are counted as failures and propagate unchanged.
- `svcgov.hashing`: `jump_hash`, `hash_string` (64-bit FNV-1a), `gen_key`,
  `jump_consistent_hash`, the `ConsistentHash` ring (`add`, `remove`,
  `get`, `all`) and `distance`, the great-circle distance in metres.
- `svcgov.weighted`: smooth weighted round robin (`Weighted`,
  `next_weighted`) and `calculate_weight`, which turns a ping round-trip
  time in milliseconds into a weight.
- `svcgov.selector`: the `Selector` interface with `RandomSelector`,
  `RoundRobinSelector`, `WeightedRoundRobinSelector` (reads `weight=` from
  server metadata), `GeoSelector` (reads `latitude=` and `longitude=`, picks
  the closest server) and `ConsistentHashSelector`. `new_selector` builds
  one from a `SelectMode`; for `WEIGHTED_ICMP` it pings each server to set
  its weight, and for `SELECT_BY_USER` it returns `None`.
- `svcgov.plugin`: `PluginContainer`. A plugin is any object; it takes part
  in an extension point by defining a method of that name (`pre_call`,
  `post_call`, `conn_created`, `conn_create_failed`, `client_connected`,
  `client_connection_close`, `client_before_encode`, `client_after_decode`,
  `wrap_select`), which the matching `do_*` method calls.
- `svcgov.discovery`: the `ServiceDiscovery` interface with
  `Peer2PeerDiscovery`, `MultipleServersDiscovery` (`update` replaces the
  servers and notifies watchers), `DNSDiscovery` (re-resolves a domain
  every `interval` seconds) and `CachedServiceDiscovery`, which keeps the
  largest server list seen in a JSON file and returns it when the wrapped
  discovery reports no more than `threshold` servers. Watchers are
  `queue.Queue` objects that receive each new server list.
- `svcgov.registry`: the `CacheClientBuilder` interface with
  `register_cache_client_builder` and `get_cache_client_builder`.
- `svcgov.errors`: `ServiceError`, `DeadlineExceeded`, `Canceled`,
  `new_service_error`, `uncover_error` and `context_canceled`.
- `svcgov.servers`: `KVPair`, `filter_by_state_and_group` and
  `split_network_and_address`.

## Example

```python
from svcgov.breaker import ConsecCircuitBreaker, BreakerOpenError
from svcgov.modes import SelectMode
from svcgov.selector import new_selector
from svcgov.servers import filter_by_state_and_group, split_network_and_address

servers = {
    "tcp@10.0.0.1:8972": "weight=3",
    "tcp@10.0.0.2:8972": "weight=1",
    "tcp@10.0.0.3:8972": "state=inactive",
}
filter_by_state_and_group("", servers)  # drops the inactive server

selector = new_selector(SelectMode.WEIGHTED_ROUND_ROBIN, servers)
key = selector.select("Arith", "Mul", {"A": 10, "B": 20})
network, address = split_network_and_address(key)  # ("tcp", "10.0.0.1:8972")

breaker = ConsecCircuitBreaker(5, 1.0)
try:
    breaker.call(lambda: None, 0.2)
except BreakerOpenError:
    pass
```

## What it does not do

svcgov does not open connections, encode messages or make calls itself.
There is no RPC client, no wire protocol and no server here: the pieces
above decide where a call goes and how failures are judged, and an RPC
client is expected to use them. Retrying by `FailMode` is likewise left
to that client; the package only defines the modes and, in
`svcgov.errors`, which errors warrant dropping a connection.

## Running the tests

```
pip install -e .[test]
pytest
```