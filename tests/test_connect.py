from __future__ import annotations

import random
import time

import pytest
import redis

from cdcctl.context import CallContext
from cdcctl.core.errors import ConfigurationError, DeadlineExceeded, OperationCancelled, StoreConnectionError
from cdcctl.store.kv import MAX_ENDPOINTS, GrpcBackoff, MemoryKVStore, connect, memory_store, parse_endpoints


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class _FlakyStore(MemoryKVStore):
    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.closed = 0

    def ping(self) -> bool:
        if self.failures > 0:
            self.failures -= 1
            raise redis.exceptions.ConnectionError("connection refused")
        return True

    def close(self) -> None:
        self.closed += 1


def test_parse_endpoints_defaults_and_bounds() -> None:
    assert parse_endpoints("127.0.0.1:2379, redis://h:1/0,") == ["redis://127.0.0.1:2379", "redis://h:1/0"]
    assert parse_endpoints(["memory://x"]) == ["memory://x"]
    with pytest.raises(ConfigurationError):
        parse_endpoints(" , ")
    with pytest.raises(ConfigurationError):
        parse_endpoints(",".join(f"h{i}:1" for i in range(MAX_ENDPOINTS + 1)))
    assert len(parse_endpoints(",".join(f"h{i}:1" for i in range(MAX_ENDPOINTS)))) == MAX_ENDPOINTS


@pytest.mark.parametrize("failures", [1, 2, 5, 40])
def test_backoff_is_bounded(failures: int) -> None:
    b = GrpcBackoff(rng=random.Random(7))
    delay = b.compute(failures)
    assert 0.0 <= delay <= 3.0 * 1.1


def test_backoff_grows() -> None:
    b = GrpcBackoff(jitter=0.0)
    assert b.compute(1) == pytest.approx(1.0)
    assert b.compute(2) == pytest.approx(1.1)
    assert b.compute(100) == pytest.approx(3.0)


def test_connect_retries_until_reachable() -> None:
    clk = _FakeClock()
    flaky = _FlakyStore(failures=2)
    store = connect(
        "a:1",
        backoff=GrpcBackoff(jitter=0.0),
        sleep=clk.sleep,
        clock=clk,
        factory=lambda ep, ct, ot: flaky,
    )
    assert store is flaky
    assert clk.sleeps == [pytest.approx(1.0), pytest.approx(1.1)]
    assert flaky.closed == 2


def test_connect_tries_every_endpoint_per_round() -> None:
    clk = _FakeClock()
    stores = {"redis://a:1": _FlakyStore(failures=10), "redis://b:1": _FlakyStore(failures=0)}
    store = connect("a:1,b:1", sleep=clk.sleep, clock=clk, factory=lambda ep, ct, ot: stores[ep])
    assert store is stores["redis://b:1"]
    assert clk.sleeps == []


def test_connect_gives_up_after_dial_timeout() -> None:
    clk = _FakeClock()
    with pytest.raises(StoreConnectionError) as ei:
        connect(
            "a:1,b:1",
            dial_timeout=5.0,
            backoff=GrpcBackoff(jitter=0.0),
            sleep=clk.sleep,
            clock=clk,
            factory=lambda ep, ct, ot: _FlakyStore(failures=1000),
        )
    assert clk.now == pytest.approx(5.0)
    assert "a:1" in ei.value.details["endpoints"]
    assert isinstance(ei.value.__cause__, redis.exceptions.ConnectionError)


def test_connect_invalid_address_is_configuration_error() -> None:
    def _bad(ep, ct, ot):  # noqa: ANN001, ANN202
        raise ValueError("Redis URL must specify one of the following schemes")

    with pytest.raises(ConfigurationError):
        connect("ftp://x", factory=_bad)


def test_memory_endpoint_is_shared_by_name() -> None:
    a = connect("memory://test-connect-shared")
    b = connect("memory://test-connect-shared")
    assert a is b is memory_store("test-connect-shared")
    assert connect("memory://test-connect-other") is not a


def test_connect_stops_at_context_deadline() -> None:
    ctx = CallContext(timeout=0.3)
    started = time.monotonic()
    with pytest.raises(DeadlineExceeded):
        connect("a:1", ctx=ctx, factory=lambda ep, ct, ot: _FlakyStore(failures=1000))
    assert time.monotonic() - started < 1.5


def test_connect_caps_connect_timeout_by_context() -> None:
    seen: list[float] = []

    def _factory(ep, ct, ot):  # noqa: ANN001, ANN202
        seen.append(ct)
        return _FlakyStore(failures=0)

    connect("a:1", ctx=CallContext(timeout=0.5), factory=_factory)
    assert 0.0 < seen[0] <= 0.5


def test_connect_with_cancelled_context_never_dials() -> None:
    ctx = CallContext()
    ctx.cancel()
    calls: list[str] = []

    def _factory(ep, ct, ot):  # noqa: ANN001, ANN202
        calls.append(ep)
        return _FlakyStore(failures=0)

    with pytest.raises(OperationCancelled):
        connect("a:1", ctx=ctx, factory=_factory)
    assert calls == []
