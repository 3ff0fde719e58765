from __future__ import annotations

import time

import pytest

from cdcctl.context import CallContext, background
from cdcctl.core.errors import DeadlineExceeded, OperationCancelled
from cdcctl.oracle import (
    MAX_LOGICAL,
    LogicalTime,
    compose_ts,
    extract_logical,
    extract_physical,
    get_logical_time,
)


def test_background_never_expires() -> None:
    ctx = background()
    assert ctx.remaining() is None
    ctx.check("noop")


def test_expired_deadline() -> None:
    ctx = CallContext(timeout=0)
    assert ctx.remaining() == 0.0
    with pytest.raises(DeadlineExceeded) as ei:
        ctx.check("get owner")
    assert ei.value.details == {"operation": "get owner"}


def test_cancel_propagates_to_children() -> None:
    parent = CallContext(timeout=60)
    child = parent.child()
    parent.cancel()
    with pytest.raises(OperationCancelled):
        child.check("list captures")


def test_child_never_outlives_parent() -> None:
    parent = CallContext(timeout=1)
    child = parent.child(timeout=100)
    assert child.deadline == parent.deadline
    short = parent.child(timeout=0.01)
    time.sleep(0.02)
    with pytest.raises(DeadlineExceeded):
        short.check("x")
    parent.check("x")


def test_compose_and_extract() -> None:
    ts = compose_ts(1_700_000_000_000, 5)
    assert ts == (1_700_000_000_000 << 18) + 5
    assert extract_physical(ts) == 1_700_000_000_000
    assert extract_logical(ts) == 5
    assert compose_ts(1, 0) > compose_ts(0, MAX_LOGICAL - 1)


def test_get_logical_time(store, ctx, clock) -> None:  # noqa: ANN001
    first = get_logical_time(store, ctx)
    assert first == LogicalTime(int(clock.now * 1000), 0)
    clock.now += 1
    second = get_logical_time(store, ctx)
    assert second.physical == first.physical + 1000
    assert second.composed > first.composed


def test_get_logical_time_respects_cancellation(store) -> None:  # noqa: ANN001
    ctx = CallContext()
    ctx.cancel()
    with pytest.raises(OperationCancelled):
        get_logical_time(store, ctx)
