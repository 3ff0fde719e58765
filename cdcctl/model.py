"""Records kept in the coordination store and the shapes cdcctl prints.

All records serialize to compact JSON with hyphenated field names. Records
written by the data plane (status, captures, tasks) keep fields this client
does not know about so they are echoed back unchanged.
"""
from __future__ import annotations

from datetime import datetime
from enum import IntEnum
from typing import Dict, List, Optional, Type, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt

from .config import ReplicaConfig
from .core.errors import MalformedValueError


class AdminJobType(IntEnum):
    NONE = 0
    STOP = 1
    RESUME = 2
    REMOVE = 3


R = TypeVar("R", bound="_Record")


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def marshal(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def unmarshal(cls: Type[R], key: str, raw: bytes) -> R:
        try:
            return cls.model_validate_json(raw)
        except pydantic.ValidationError as exc:
            reason = "; ".join(
                f"{'.'.join(str(p) for p in e['loc']) or '<root>'}: {e['msg']}" for e in exc.errors()
            )
            raise MalformedValueError(key, reason) from exc


class _DataPlaneRecord(_Record):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ChangefeedInfo(_Record):
    id: str = ""
    sink_uri: str = Field(alias="sink-uri")
    opts: Dict[str, str] = Field(default_factory=dict)
    create_time: datetime = Field(alias="create-time")
    start_ts: NonNegativeInt = Field(alias="start-ts")
    # 0 means unbounded
    target_ts: NonNegativeInt = Field(default=0, alias="target-ts")
    config: ReplicaConfig = Field(default_factory=ReplicaConfig)


class ChangefeedStatus(_DataPlaneRecord):
    resolved_ts: NonNegativeInt = Field(default=0, alias="resolved-ts")
    checkpoint_ts: NonNegativeInt = Field(default=0, alias="checkpoint-ts")
    admin_job_type: AdminJobType = Field(default=AdminJobType.NONE, alias="admin-job-type")


class CaptureInfo(_DataPlaneRecord):
    id: str
    address: Optional[str] = None


class ProcessTableInfo(_DataPlaneRecord):
    id: NonNegativeInt
    start_ts: NonNegativeInt = Field(default=0, alias="start-ts")


class TaskStatus(_DataPlaneRecord):
    tables: List[ProcessTableInfo] = Field(default_factory=list)
    admin_job_type: AdminJobType = Field(default=AdminJobType.NONE, alias="admin-job-type")


class ChangefeedEntry(_Record):
    id: str


class CaptureEntry(_Record):
    id: str
    is_owner: bool = Field(alias="is-owner")


class ProcessorEntry(_Record):
    changefeed_id: str = Field(alias="changefeed-id")
    capture_id: str = Field(alias="capture-id")
    status: TaskStatus
