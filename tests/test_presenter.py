from __future__ import annotations

import io
import json

from cdcctl.changefeed import CreateParams, create_changefeed
from cdcctl.control import ControlCommand, ControlResult
from cdcctl.model import CaptureEntry, ChangefeedStatus
from cdcctl.presenter import emit, render, render_control, render_created


def test_render_uses_hyphenated_names() -> None:
    line = render([CaptureEntry(id="c1", is_owner=True)])
    assert line == '[{"id":"c1","is-owner":true}]'


def test_render_none_is_null() -> None:
    assert render_control(ControlResult(ControlCommand.SUB_CF, None)) == "null"


def test_render_logical_time_is_plain_integer() -> None:
    assert render_control(ControlResult(ControlCommand.GET_LOGICAL_TIME, 445566778899)) == "445566778899"


def test_render_counts_and_status() -> None:
    assert json.loads(render({"capture-info": 2})) == {"capture-info": 2}
    status = ChangefeedStatus.model_validate({"resolved-ts": 9, "checkpoint-ts": 8, "admin-job-type": 1})
    assert json.loads(render(status)) == {"resolved-ts": 9, "checkpoint-ts": 8, "admin-job-type": 1}


def test_render_created_echoes_payload(store, ctx) -> None:  # noqa: ANN001
    res = create_changefeed(store, ctx, CreateParams(sink_uri="blackhole://", start_ts=3, changefeed_id="cf"))
    line = render_created(res)
    assert line.startswith("create changefeed ID: cf detail {")
    assert json.loads(line.split(" detail ", 1)[1])["start-ts"] == 3


def test_emit_writes_one_line() -> None:
    buf = io.StringIO()
    emit("hello", buf)
    assert buf.getvalue() == "hello\n"
