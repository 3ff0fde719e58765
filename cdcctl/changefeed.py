"""Changefeed creation.

Steps, in order:
  1) pick an id (uuid4 unless the caller supplied one)
  2) resolve start-ts from the timing service when not given
  3) validate start-ts against the GC safepoint
  4) strictly decode the replication config file, if any
  5) parse the key=value options (best effort, malformed tokens are skipped)
  6) persist the ChangefeedInfo with a single write

Nothing is written before step 6, so any failure leaves the store untouched.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .config import ReplicaConfig, strict_decode_file
from .context import CallContext
from .model import ChangefeedInfo
from .oracle import get_logical_time
from .safepoint import validate_start_ts
from .store.client import CDCStoreClient
from .telemetry.logging import get_logger

CONFIG_COMPONENT = "cdc"


@dataclass
class CreateParams:
    sink_uri: str
    start_ts: int = 0  # 0: use the current logical time
    target_ts: int = 0  # 0: unbounded
    config_file: Optional[str] = None
    options: List[str] = field(default_factory=list)
    changefeed_id: Optional[str] = None


@dataclass
class OptionParseResult:
    parsed: Dict[str, str]
    warnings: List[str]


@dataclass
class CreateResult:
    changefeed_id: str
    info: ChangefeedInfo
    payload: str
    warnings: List[str]


def parse_options(options: Iterable[str]) -> OptionParseResult:
    """Parse ``key=value`` tokens.

    Splits on the first ``=`` only; a token without ``=`` maps to an empty
    value. Tokens with an empty key are skipped with a warning. Later
    duplicates win.
    """
    parsed: Dict[str, str] = {}
    warnings: List[str] = []
    for opt in options:
        key, _, value = opt.partition("=")
        if not key:
            warnings.append(f"omit opt: {opt!r}")
            continue
        parsed[key] = value
    return OptionParseResult(parsed, warnings)


def create_changefeed(store: CDCStoreClient, ctx: CallContext, params: CreateParams) -> CreateResult:
    changefeed_id = params.changefeed_id or str(uuid.uuid4())
    log = get_logger("cdcctl.changefeed", {"changefeed": changefeed_id})

    start_ts = params.start_ts
    if start_ts == 0:
        start_ts = get_logical_time(store, ctx).composed
        log.debug(f"start-ts resolved to current time {start_ts}")

    validate_start_ts(store, ctx, start_ts)

    cfg = ReplicaConfig()
    if params.config_file:
        cfg = strict_decode_file(params.config_file, CONFIG_COMPONENT, ReplicaConfig)

    opts = parse_options(params.options)
    for warning in opts.warnings:
        log.warning(warning)

    info = ChangefeedInfo(
        id=changefeed_id,
        sink_uri=params.sink_uri,
        opts=opts.parsed,
        create_time=datetime.now(timezone.utc),
        start_ts=start_ts,
        target_ts=params.target_ts,
        config=cfg,
    )
    payload = store.save_changefeed_info(ctx, info)
    log.info(f"changefeed created start-ts={start_ts} target-ts={params.target_ts}")
    return CreateResult(changefeed_id, info, payload, opts.warnings)
