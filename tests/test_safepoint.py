from __future__ import annotations

import pytest

from cdcctl.core.errors import MalformedSafepointError, StaleStartTsError
from cdcctl.safepoint import MAX_UINT64, parse_safepoint, validate_start_ts
from cdcctl.store import keys


@pytest.mark.parametrize("raw,expected", [(b"0", 0), (b"425", 425), (str(MAX_UINT64).encode(), MAX_UINT64)])
def test_parse_safepoint(raw: bytes, expected: int) -> None:
    assert parse_safepoint(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [b"", b" 123\n", b"123 ", b"+5", b"-5", b"1e3", b"\xd9\xa3", str(MAX_UINT64 + 1).encode()],
)
def test_parse_safepoint_rejects(raw: bytes) -> None:
    with pytest.raises(MalformedSafepointError):
        parse_safepoint(raw)


def test_validate_start_ts_boundary(store, ctx, seed) -> None:  # noqa: ANN001
    seed.safepoint(MAX_UINT64)
    validate_start_ts(store, ctx, MAX_UINT64)
    with pytest.raises(StaleStartTsError):
        validate_start_ts(store, ctx, MAX_UINT64 - 1)


def test_padded_safepoint_is_malformed(store, ctx, kv) -> None:  # noqa: ANN001
    kv.put(keys.GC_SAVED_SAFEPOINT_KEY, b"100\n")
    with pytest.raises(MalformedSafepointError):
        validate_start_ts(store, ctx, 200)
