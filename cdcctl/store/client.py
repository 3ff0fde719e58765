"""Typed accessor over the coordination store.

Wraps a raw ``KVStore`` with the changefeed/capture/task key layout and the
record codecs. Every method takes a ``CallContext`` and checks it before
touching the store. Store errors propagate to the caller.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from ..context import CallContext
from ..core.errors import CdcCtlError, ClearAllError, NotFoundError
from ..model import CaptureInfo, ChangefeedInfo, ChangefeedStatus, TaskStatus
from ..telemetry.logging import get_logger
from . import keys
from .kv import KVStore


class CDCStoreClient:
    def __init__(self, kv: KVStore) -> None:
        self.kv = kv
        self._log = get_logger("cdcctl.store.client")

    def close(self) -> None:
        self.kv.close()

    # changefeeds

    def get_changefeed_info(self, ctx: CallContext, changefeed_id: str) -> ChangefeedInfo:
        ctx.check("get changefeed info")
        key = keys.changefeed_info_key(changefeed_id)
        raw = self.kv.get(key)
        if raw is None:
            raise NotFoundError("changefeed info", key)
        info = ChangefeedInfo.unmarshal(key, raw)
        if not info.id:
            info.id = changefeed_id
        return info

    def save_changefeed_info(self, ctx: CallContext, info: ChangefeedInfo) -> str:
        """Persist ``info`` under its id with a single write; returns the payload written."""
        ctx.check("save changefeed info")
        payload = info.marshal()
        self.kv.put(keys.changefeed_info_key(info.id), payload.encode("utf-8"))
        return payload

    def get_changefeed_status(self, ctx: CallContext, changefeed_id: str) -> ChangefeedStatus:
        ctx.check("get changefeed status")
        key = keys.job_status_key(changefeed_id)
        raw = self.kv.get(key)
        if raw is None:
            raise NotFoundError("changefeed status", key)
        return ChangefeedStatus.unmarshal(key, raw)

    def get_changefeeds(self, ctx: CallContext) -> Dict[str, bytes]:
        """Raw changefeed info values keyed by changefeed id."""
        ctx.check("list changefeeds")
        prefix = keys.CHANGEFEED_INFO_PREFIX
        return {k[len(prefix):]: v for k, v in self.kv.get_prefix(prefix)}

    # captures and tasks

    def get_captures(self, ctx: CallContext) -> List[CaptureInfo]:
        """Registered captures, identified by their registration key."""
        ctx.check("list captures")
        prefix = keys.CAPTURE_INFO_PREFIX
        out: List[CaptureInfo] = []
        for k, v in self.kv.get_prefix(prefix):
            info = CaptureInfo.unmarshal(k, v)
            capture_id = k[len(prefix):]
            if info.id != capture_id:
                self._log.warning(f"capture registered under {k} claims id {info.id!r}; using {capture_id!r}")
                info.id = capture_id
            out.append(info)
        return out

    def get_all_task_statuses(self, ctx: CallContext) -> List[Tuple[str, str, TaskStatus]]:
        """(changefeed_id, capture_id, status) for every task status record."""
        ctx.check("list task statuses")
        out: List[Tuple[str, str, TaskStatus]] = []
        for k, v in self.kv.get_prefix(keys.TASK_STATUS_PREFIX):
            changefeed_id, capture_id = keys.split_task_status_key(k)
            out.append((changefeed_id, capture_id, TaskStatus.unmarshal(k, v)))
        return out

    def get_task_status(self, ctx: CallContext, changefeed_id: str, capture_id: str) -> Optional[TaskStatus]:
        """Task status as assigned under the current owner.

        Returns None while no owner is elected: assignments are not
        authoritative during a leaderless window.
        """
        if self.get_owner_id(ctx) is None:
            self._log.info(f"no owner elected; task status of {changefeed_id}/{capture_id} unavailable")
            return None
        ctx.check("get task status")
        key = keys.task_status_key(changefeed_id, capture_id)
        raw = self.kv.get(key)
        if raw is None:
            raise NotFoundError("task status", key)
        return TaskStatus.unmarshal(key, raw)

    # election and external keys

    def get_owner_id(self, ctx: CallContext) -> Optional[str]:
        ctx.check("get owner")
        return self.kv.leader(keys.CAPTURE_OWNER_KEY)

    def get_gc_safepoint(self, ctx: CallContext) -> Optional[bytes]:
        ctx.check("get gc safepoint")
        return self.kv.get(keys.GC_SAVED_SAFEPOINT_KEY)

    def allocate_ts(self, ctx: CallContext, max_logical: int) -> Tuple[int, int]:
        ctx.check("allocate timestamp")
        return self.kv.allocate_ts(keys.TIMESTAMP_ORACLE_KEY, max_logical)

    # administration

    def clear_all(self, ctx: CallContext) -> Dict[str, int]:
        """Delete every portion of the managed key space.

        All portions are attempted; if any fails, ClearAllError lists the
        failed portions together with the ones that were removed.
        """
        cleared: Dict[str, int] = {}
        failed: Dict[str, str] = {}
        for name, prefix in keys.MANAGED_PORTIONS.items():
            try:
                ctx.check(f"clear {name}")
                cleared[name] = self.kv.delete_prefix(prefix)
            except CdcCtlError as exc:
                failed[name] = str(exc)
                self._log.error(f"clear-all failed on {name} ({prefix}): {exc}")
        if failed:
            raise ClearAllError(failed, cleared)
        return cleared
