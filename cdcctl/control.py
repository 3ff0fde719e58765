"""Query and administration commands.

Each ``ControlCommand`` maps to exactly one handler in ``_HANDLERS``. Handlers
only read state, except clear-all which deletes the managed key space.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .context import CallContext
from .core.errors import UsageError
from .model import CaptureEntry, ChangefeedEntry, ProcessorEntry
from .oracle import get_logical_time
from .owner import resolve_owner
from .store.client import CDCStoreClient
from .telemetry.logging import get_logger

_log = get_logger("cdcctl.control")


class ControlCommand(str, Enum):
    JOB_INFO = "job-info"
    JOB_STATUS = "job-status"
    JOB_LIST = "job-list"
    CAPTURE_LIST = "capture-list"
    PROCESSOR_LIST = "processor-list"
    SUB_CF = "sub-cf"
    CLEAR_ALL = "clear-all"
    GET_LOGICAL_TIME = "get-logical-time"

    @classmethod
    def parse(cls, token: str) -> Optional["ControlCommand"]:
        token = token.strip()
        for cmd in cls:
            if cmd.value == token:
                return cmd
        return _LEGACY_TOKENS.get(token)


_LEGACY_TOKENS: Dict[str, ControlCommand] = {
    "query-cf-info": ControlCommand.JOB_INFO,
    "query-cf-status": ControlCommand.JOB_STATUS,
    "query-cf-list": ControlCommand.JOB_LIST,
    "query-capture-list": ControlCommand.CAPTURE_LIST,
    "query-processor-list": ControlCommand.PROCESSOR_LIST,
    "query-sub-cf": ControlCommand.SUB_CF,
    "get-tso": ControlCommand.GET_LOGICAL_TIME,
}


@dataclass
class ControlParams:
    changefeed_id: str = ""
    capture_id: str = ""


@dataclass
class ControlResult:
    command: ControlCommand
    payload: Any


def _require(value: str, flag: str, command: ControlCommand) -> str:
    if not value:
        raise UsageError(f"{command.value} requires {flag}", {"command": command.value})
    return value


def _job_info(store: CDCStoreClient, ctx: CallContext, params: ControlParams) -> Any:
    cf_id = _require(params.changefeed_id, "--changefeed-id", ControlCommand.JOB_INFO)
    return store.get_changefeed_info(ctx, cf_id)


def _job_status(store: CDCStoreClient, ctx: CallContext, params: ControlParams) -> Any:
    cf_id = _require(params.changefeed_id, "--changefeed-id", ControlCommand.JOB_STATUS)
    return store.get_changefeed_status(ctx, cf_id)


def _job_list(store: CDCStoreClient, ctx: CallContext, params: ControlParams) -> Any:
    return [ChangefeedEntry(id=cf_id) for cf_id in sorted(store.get_changefeeds(ctx))]


def _capture_list(store: CDCStoreClient, ctx: CallContext, params: ControlParams) -> Any:
    captures = store.get_captures(ctx)
    owner_id = resolve_owner(store, ctx)
    return [CaptureEntry(id=c.id, is_owner=owner_id is not None and c.id == owner_id) for c in captures]


def _processor_list(store: CDCStoreClient, ctx: CallContext, params: ControlParams) -> Any:
    return [
        ProcessorEntry(changefeed_id=cf_id, capture_id=capture_id, status=status)
        for cf_id, capture_id, status in store.get_all_task_statuses(ctx)
    ]


def _sub_cf(store: CDCStoreClient, ctx: CallContext, params: ControlParams) -> Any:
    cf_id = _require(params.changefeed_id, "--changefeed-id", ControlCommand.SUB_CF)
    capture_id = _require(params.capture_id, "--capture-id", ControlCommand.SUB_CF)
    return store.get_task_status(ctx, cf_id, capture_id)


def _clear_all(store: CDCStoreClient, ctx: CallContext, params: ControlParams) -> Any:
    cleared = store.clear_all(ctx)
    _log.warning(f"cleared all cdc state: {cleared}")
    return cleared


def _get_logical_time(store: CDCStoreClient, ctx: CallContext, params: ControlParams) -> Any:
    return get_logical_time(store, ctx).composed


_HANDLERS: Dict[ControlCommand, Callable[[CDCStoreClient, CallContext, ControlParams], Any]] = {
    ControlCommand.JOB_INFO: _job_info,
    ControlCommand.JOB_STATUS: _job_status,
    ControlCommand.JOB_LIST: _job_list,
    ControlCommand.CAPTURE_LIST: _capture_list,
    ControlCommand.PROCESSOR_LIST: _processor_list,
    ControlCommand.SUB_CF: _sub_cf,
    ControlCommand.CLEAR_ALL: _clear_all,
    ControlCommand.GET_LOGICAL_TIME: _get_logical_time,
}

# Every command must have a handler
assert set(_HANDLERS) == set(ControlCommand), "unhandled control command"


def dispatch(
    store: CDCStoreClient,
    ctx: CallContext,
    command: ControlCommand,
    params: Optional[ControlParams] = None,
) -> ControlResult:
    params = params or ControlParams()
    _log.debug(f"dispatch {command.value} changefeed={params.changefeed_id!r} capture={params.capture_id!r}")
    return ControlResult(command, _HANDLERS[command](store, ctx, params))


def command_tokens() -> List[str]:
    return [cmd.value for cmd in ControlCommand]
