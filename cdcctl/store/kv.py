"""
Coordination store backends.

- ``RedisKVStore``: redis-backed KV with prefix scans, transactional batch
  writes, leader election via ``SET NX`` and a Lua timestamp oracle.
- ``MemoryKVStore``: in-process equivalent used by tests and ``memory://``.
- ``connect``: dials a bounded list of candidate endpoints with gRPC-style
  exponential backoff. Connection establishment is the only retried step.
"""
from __future__ import annotations

import random
import threading
import time
from typing import Callable, Iterable, List, Optional, Protocol, Sequence, Tuple

import redis
from redis.backoff import AbstractBackoff, NoBackoff
from redis.retry import Retry

from ..context import CallContext
from ..core.errors import ConfigurationError, MalformedValueError, StoreConnectionError, StoreError
from ..telemetry.logging import get_logger

MAX_ENDPOINTS = 16
DEFAULT_ADDR = "redis://127.0.0.1:6379/0"

_log = get_logger("cdcctl.store")


def _text(key: str, raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedValueError(key, f"not valid UTF-8: {exc.reason}") from exc


class KVStore(Protocol):
    def ping(self) -> bool: ...

    def get(self, key: str) -> bytes | None: ...

    def put(self, key: str, value: bytes, ttl: float | None = None) -> None: ...

    def put_many(self, items: Sequence[Tuple[str, bytes]]) -> None: ...

    def get_prefix(self, prefix: str) -> list[tuple[str, bytes]]: ...

    def delete(self, key: str) -> int: ...

    def delete_prefix(self, prefix: str) -> int: ...

    def campaign(self, key: str, value: str, ttl: int = 10) -> bool: ...

    def leader(self, key: str) -> str | None: ...

    def resign(self, key: str, value: str) -> bool: ...

    def allocate_ts(self, key: str, max_logical: int) -> tuple[int, int]: ...

    def close(self) -> None: ...


class MemoryKVStore:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._store: dict[str, bytes] = {}
        self._expiry: dict[str, float] = {}
        self._clock = clock
        self._lock = threading.Lock()

    def _expire(self, key: str) -> None:
        deadline = self._expiry.get(key)
        if deadline is not None and self._clock() >= deadline:
            self._store.pop(key, None)
            self._expiry.pop(key, None)

    def _expire_all(self) -> None:
        for k in list(self._expiry):
            self._expire(k)

    def ping(self) -> bool:
        return True

    def get(self, key: str) -> bytes | None:
        with self._lock:
            self._expire(key)
            return self._store.get(key)

    def put(self, key: str, value: bytes, ttl: float | None = None) -> None:
        with self._lock:
            self._store[key] = value
            if ttl and ttl > 0:
                self._expiry[key] = self._clock() + ttl
            else:
                self._expiry.pop(key, None)

    def put_many(self, items: Sequence[Tuple[str, bytes]]) -> None:
        with self._lock:
            for k, v in items:
                self._store[k] = v
                self._expiry.pop(k, None)

    def get_prefix(self, prefix: str) -> list[tuple[str, bytes]]:
        with self._lock:
            self._expire_all()
            return sorted((k, v) for k, v in self._store.items() if k.startswith(prefix))

    def delete(self, key: str) -> int:
        with self._lock:
            self._expire(key)
            self._expiry.pop(key, None)
            return 1 if self._store.pop(key, None) is not None else 0

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            keys_to_del = [k for k in self._store if k.startswith(prefix)]
            for k in keys_to_del:
                del self._store[k]
                self._expiry.pop(k, None)
            return len(keys_to_del)

    def campaign(self, key: str, value: str, ttl: int = 10) -> bool:
        # First holder wins and keeps it for 'ttl' seconds or until it resigns
        with self._lock:
            self._expire(key)
            current = self._store.get(key)
            if current is not None and current != value.encode("utf-8"):
                return False
            self._store[key] = value.encode("utf-8")
            self._expiry[key] = self._clock() + max(1, int(ttl))
            return True

    def leader(self, key: str) -> str | None:
        raw = self.get(key)
        return _text(key, raw) if raw is not None else None

    def resign(self, key: str, value: str) -> bool:
        with self._lock:
            self._expire(key)
            current = self._store.get(key)
            if current is None or current != value.encode("utf-8"):
                return False
            del self._store[key]
            self._expiry.pop(key, None)
            return True

    def allocate_ts(self, key: str, max_logical: int) -> tuple[int, int]:
        with self._lock:
            physical = int(self._clock() * 1000)
            logical = 0
            last = self._store.get(key)
            if last is not None:
                last_physical, last_logical = (int(x) for x in last.decode("utf-8").split(":"))
                if physical <= last_physical:
                    physical = last_physical
                    logical = last_logical + 1
                    if logical >= max_logical:
                        physical, logical = last_physical + 1, 0
            self._store[key] = f"{physical}:{logical}".encode("utf-8")
            return physical, logical

    def close(self) -> None:
        pass


# Keeps the last issued (physical, logical) pair in a hash so timestamps
# are strictly increasing even when the server clock does not move.
_ALLOCATE_TS_LUA = """
local now = redis.call('TIME')
local physical = tonumber(now[1]) * 1000 + math.floor(tonumber(now[2]) / 1000)
local logical = 0
local last = redis.call('HMGET', KEYS[1], 'physical', 'logical')
if last[1] then
  local last_physical = tonumber(last[1])
  if physical <= last_physical then
    physical = last_physical
    logical = tonumber(last[2]) + 1
    if logical >= tonumber(ARGV[1]) then
      physical = last_physical + 1
      logical = 0
    end
  end
end
redis.call('HSET', KEYS[1], 'physical', physical, 'logical', logical)
return {physical, logical}
"""

_RESIGN_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
  return redis.call('DEL', KEYS[1])
end
return 0
"""


def _glob_escape(prefix: str) -> str:
    out = []
    for ch in prefix:
        if ch in "*?[]\\":
            out.append("\\")
        out.append(ch)
    return "".join(out)


class RedisKVStore:
    """Redis-backed KV with basic primitives and TTL support."""

    def __init__(
        self,
        url: str = DEFAULT_ADDR,
        *,
        connect_timeout: float = 3.0,
        op_timeout: float | None = None,
        client: "redis.Redis | None" = None,
    ) -> None:
        self.url = url
        if client is None:
            client = redis.Redis.from_url(
                url,
                socket_connect_timeout=connect_timeout,
                socket_timeout=op_timeout,
                retry=Retry(NoBackoff(), 0),
                retry_on_timeout=False,
            )
        self._r = client
        self._allocate_ts = self._r.register_script(_ALLOCATE_TS_LUA)
        self._resign = self._r.register_script(_RESIGN_LUA)

    def _wrap(self, op: str, key: str, fn: Callable[[], object]):
        try:
            return fn()
        except redis.exceptions.RedisError as exc:
            raise StoreError(f"{op} failed: {exc}", {"operation": op, "key": key, "endpoint": self.url}) from exc

    def ping(self) -> bool:
        # Connection errors are left unwrapped so connect() can back off on them
        return bool(self._r.ping())

    def get(self, key: str) -> bytes | None:
        return self._wrap("get", key, lambda: self._r.get(key))

    def put(self, key: str, value: bytes, ttl: float | None = None) -> None:
        if ttl and ttl > 0:
            self._wrap("put", key, lambda: self._r.set(key, value, ex=max(1, int(ttl))))
        else:
            self._wrap("put", key, lambda: self._r.set(key, value))

    def put_many(self, items: Sequence[Tuple[str, bytes]]) -> None:
        def _run() -> None:
            pipe = self._r.pipeline(transaction=True)
            for k, v in items:
                pipe.set(k, v)
            pipe.execute()

        self._wrap("put_many", ",".join(k for k, _ in items), _run)

    def _scan_keys(self, prefix: str) -> list[bytes]:
        patt = _glob_escape(prefix) + "*"
        cursor = 0
        keys: list[bytes] = []
        while True:
            cursor, batch = self._r.scan(cursor=cursor, match=patt, count=200)
            keys.extend(batch)
            if cursor == 0:
                break
        return keys

    def get_prefix(self, prefix: str) -> list[tuple[str, bytes]]:
        def _run() -> list[tuple[str, bytes]]:
            out: list[tuple[str, bytes]] = []
            keys = sorted(set(self._scan_keys(prefix)))
            if keys:
                vals = self._r.mget(keys)
                for k, v in zip(keys, vals):
                    if v is not None:
                        out.append((_text(k.decode("utf-8", "backslashreplace"), k), v))
            return out

        return self._wrap("get_prefix", prefix, _run)

    def delete(self, key: str) -> int:
        return int(self._wrap("delete", key, lambda: self._r.delete(key)))

    def delete_prefix(self, prefix: str) -> int:
        def _run() -> int:
            todel = self._scan_keys(prefix)
            if not todel:
                return 0
            pipe = self._r.pipeline(transaction=True)
            for k in todel:
                pipe.delete(k)
            return sum(int(n) for n in pipe.execute())

        return self._wrap("delete_prefix", prefix, _run)

    def campaign(self, key: str, value: str, ttl: int = 10) -> bool:
        def _run() -> bool:
            if self._r.set(key, value, nx=True, ex=max(1, int(ttl))):
                return True
            current = self._r.get(key)
            return current == value.encode("utf-8")

        return self._wrap("campaign", key, _run)

    def leader(self, key: str) -> str | None:
        raw = self.get(key)
        return _text(key, raw) if raw is not None else None

    def resign(self, key: str, value: str) -> bool:
        return bool(self._wrap("resign", key, lambda: self._resign(keys=[key], args=[value])))

    def allocate_ts(self, key: str, max_logical: int) -> tuple[int, int]:
        physical, logical = self._wrap("allocate_ts", key, lambda: self._allocate_ts(keys=[key], args=[max_logical]))
        return int(physical), int(logical)

    def close(self) -> None:
        try:
            self._r.close()
        except redis.exceptions.RedisError as exc:
            _log.debug(f"close {self.url}: {exc}")


class GrpcBackoff(AbstractBackoff):
    """Exponential backoff with jitter, shaped like gRPC's connection backoff."""

    def __init__(
        self,
        base: float = 1.0,
        multiplier: float = 1.1,
        jitter: float = 0.1,
        max_delay: float = 3.0,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._base = base
        self._multiplier = multiplier
        self._jitter = jitter
        self._max_delay = max_delay
        self._rng = rng or random.Random()

    def reset(self) -> None:
        pass

    def compute(self, failures: int) -> float:
        delay = min(self._base * self._multiplier ** max(0, failures - 1), self._max_delay)
        delay *= 1 + self._jitter * self._rng.uniform(-1.0, 1.0)
        return max(0.0, delay)


_MEMORY_STORES: dict[str, MemoryKVStore] = {}
_MEMORY_LOCK = threading.Lock()


def memory_store(name: str = "") -> MemoryKVStore:
    """Process-wide named in-memory store behind ``memory://<name>``."""
    with _MEMORY_LOCK:
        store = _MEMORY_STORES.get(name)
        if store is None:
            store = MemoryKVStore()
            _MEMORY_STORES[name] = store
        return store


def parse_endpoints(addresses: str | Iterable[str]) -> List[str]:
    if isinstance(addresses, str):
        raw = addresses.split(",")
    else:
        raw = list(addresses)
    endpoints: List[str] = []
    for addr in raw:
        addr = addr.strip()
        if not addr:
            continue
        if "://" not in addr:
            addr = f"redis://{addr}"
        endpoints.append(addr)
    if not endpoints:
        raise ConfigurationError("no coordination store address given")
    if len(endpoints) > MAX_ENDPOINTS:
        raise ConfigurationError(
            f"too many coordination store endpoints: {len(endpoints)} (max {MAX_ENDPOINTS})"
        )
    return endpoints


def _open_endpoint(endpoint: str, connect_timeout: float, op_timeout: float | None) -> KVStore:
    if endpoint.startswith("memory://"):
        return memory_store(endpoint[len("memory://"):])
    return RedisKVStore(endpoint, connect_timeout=connect_timeout, op_timeout=op_timeout)


def connect(
    addresses: str | Iterable[str],
    *,
    ctx: Optional[CallContext] = None,
    dial_timeout: float = 5.0,
    connect_timeout: float = 3.0,
    op_timeout: float | None = None,
    backoff: Optional[AbstractBackoff] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    factory: Callable[[str, float, float | None], KVStore] = _open_endpoint,
) -> KVStore:
    """Dial the first reachable endpoint, backing off between rounds until dial_timeout.

    When ``ctx`` is given it is checked before every attempt, and neither the
    connect timeout nor the backoff sleep extends past its deadline.
    """
    endpoints = parse_endpoints(addresses)
    backoff = backoff or GrpcBackoff()
    deadline = clock() + dial_timeout
    failures = 0
    last_exc: Exception | None = None
    while True:
        for ep in endpoints:
            timeout = connect_timeout
            if ctx is not None:
                ctx.check("connect")
                budget = ctx.remaining()
                if budget is not None:
                    timeout = min(timeout, budget)
            try:
                store = factory(ep, timeout, op_timeout)
            except ValueError as exc:
                raise ConfigurationError(f"invalid coordination store address {ep}: {exc}") from exc
            try:
                store.ping()
                _log.debug(f"connected to {ep}")
                return store
            except (redis.exceptions.RedisError, OSError) as exc:
                last_exc = exc
                store.close()
                _log.warning(f"endpoint {ep} unavailable: {exc}")
        failures += 1
        if ctx is not None:
            ctx.check("connect")
        remaining = deadline - clock()
        if remaining <= 0:
            raise StoreConnectionError(
                f"could not connect to coordination store: {last_exc}",
                {"endpoints": ",".join(endpoints), "attempts": failures},
            ) from last_exc
        delay = min(backoff.compute(failures), remaining)
        budget = ctx.remaining() if ctx is not None else None
        if budget is not None:
            delay = min(delay, budget)
        sleep(delay)
