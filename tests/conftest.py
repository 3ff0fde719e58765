from __future__ import annotations

import json

import pytest

from cdcctl.context import CallContext
from cdcctl.store import keys
from cdcctl.store.client import CDCStoreClient
from cdcctl.store.kv import MemoryKVStore


class _Clock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class _Seeder:
    """Writes records the way capture processes and the GC worker would."""

    def __init__(self, kv: MemoryKVStore) -> None:
        self.kv = kv

    def capture(self, capture_id: str, address: str = "127.0.0.1:8300") -> None:
        body = {"id": capture_id, "address": address}
        self.kv.put(keys.capture_info_key(capture_id), json.dumps(body).encode())

    def task(self, changefeed_id: str, capture_id: str, tables: list[int] | None = None) -> None:
        body = {"tables": [{"id": t, "start-ts": 100} for t in (tables or [])], "admin-job-type": 0}
        self.kv.put(keys.task_status_key(changefeed_id, capture_id), json.dumps(body).encode())

    def status(self, changefeed_id: str, resolved_ts: int, checkpoint_ts: int, **extra: object) -> None:
        body = {"resolved-ts": resolved_ts, "checkpoint-ts": checkpoint_ts, "admin-job-type": 0, **extra}
        self.kv.put(keys.job_status_key(changefeed_id), json.dumps(body).encode())

    def owner(self, capture_id: str, ttl: int = 10) -> None:
        assert self.kv.campaign(keys.CAPTURE_OWNER_KEY, capture_id, ttl=ttl)

    def safepoint(self, value: int | str) -> None:
        self.kv.put(keys.GC_SAVED_SAFEPOINT_KEY, str(value).encode())


@pytest.fixture
def clock() -> _Clock:
    return _Clock()


@pytest.fixture
def kv(clock: _Clock) -> MemoryKVStore:
    return MemoryKVStore(clock=clock)


@pytest.fixture
def store(kv: MemoryKVStore) -> CDCStoreClient:
    return CDCStoreClient(kv)


@pytest.fixture
def seed(kv: MemoryKVStore) -> _Seeder:
    return _Seeder(kv)


@pytest.fixture
def ctx() -> CallContext:
    return CallContext(timeout=30)
