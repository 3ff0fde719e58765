"""Rendering of command results for the operator.

Query results become one line of compact JSON with hyphenated field names;
``None`` renders as ``null``. Logical time is printed as a plain integer.
"""
from __future__ import annotations

import json
import sys
from typing import Any, Optional, TextIO

from pydantic import BaseModel

from .changefeed import CreateResult
from .control import ControlCommand, ControlResult


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def render(payload: Any) -> str:
    return json.dumps(_jsonable(payload), separators=(",", ":"))


def render_control(result: ControlResult) -> str:
    if result.command is ControlCommand.GET_LOGICAL_TIME:
        return str(result.payload)
    return render(result.payload)


def render_created(result: CreateResult) -> str:
    return f"create changefeed ID: {result.changefeed_id} detail {result.payload}"


def emit(line: str, out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    out.write(line + "\n")
    out.flush()
