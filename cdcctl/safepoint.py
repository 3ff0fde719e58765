"""GC safepoint validation.

History older than the saved GC safepoint may already be collected, so a
changefeed must not start below it.
"""
from __future__ import annotations

from .context import CallContext
from .core.errors import MalformedSafepointError, StaleStartTsError
from .store.client import CDCStoreClient

MAX_UINT64 = (1 << 64) - 1


def parse_safepoint(raw: bytes) -> int:
    """Parse the stored safepoint: plain ASCII decimal digits, no sign or whitespace."""
    try:
        text = raw.decode("ascii")
    except UnicodeDecodeError:
        raise MalformedSafepointError(raw) from None
    if not text.isdigit():
        raise MalformedSafepointError(raw)
    value = int(text)
    if value > MAX_UINT64:
        raise MalformedSafepointError(raw)
    return value


def validate_start_ts(store: CDCStoreClient, ctx: CallContext, start_ts: int) -> None:
    """Raise StaleStartTsError if ``start_ts`` is below the saved GC safepoint.

    An absent safepoint means no GC has run yet and always passes.
    """
    raw = store.get_gc_safepoint(ctx)
    if raw is None:
        return
    safepoint = parse_safepoint(raw)
    if start_ts < safepoint:
        raise StaleStartTsError(start_ts, safepoint)
