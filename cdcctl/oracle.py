"""Logical time.

A logical timestamp is a (physical milliseconds, logical counter) pair issued
by the timing service and composed into one comparable integer.
"""
from __future__ import annotations

from dataclasses import dataclass

from .context import CallContext
from .store.client import CDCStoreClient

PHYSICAL_SHIFT_BITS = 18
MAX_LOGICAL = 1 << PHYSICAL_SHIFT_BITS


def compose_ts(physical: int, logical: int) -> int:
    return (physical << PHYSICAL_SHIFT_BITS) + logical


def extract_physical(ts: int) -> int:
    return ts >> PHYSICAL_SHIFT_BITS


def extract_logical(ts: int) -> int:
    return ts & (MAX_LOGICAL - 1)


@dataclass(frozen=True)
class LogicalTime:
    physical: int
    logical: int

    @property
    def composed(self) -> int:
        return compose_ts(self.physical, self.logical)


def get_logical_time(store: CDCStoreClient, ctx: CallContext) -> LogicalTime:
    physical, logical = store.allocate_ts(ctx, MAX_LOGICAL)
    return LogicalTime(physical, logical)
