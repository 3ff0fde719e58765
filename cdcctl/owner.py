"""Owner resolution.

The owner is the capture holding the capture-owner election. A leaderless
window is a normal transient cluster state, so "no owner" is a regular
result (None) rather than an error.
"""
from __future__ import annotations

from typing import Optional

from .context import CallContext
from .store.client import CDCStoreClient
from .telemetry.logging import get_logger

_log = get_logger("cdcctl.owner")


def resolve_owner(store: CDCStoreClient, ctx: CallContext) -> Optional[str]:
    owner_id = store.get_owner_id(ctx)
    if owner_id is None:
        _log.info("no owner currently elected")
    return owner_id
