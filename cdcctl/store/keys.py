"""Key layout of the state cdcctl reads and manages in the coordination store."""
from __future__ import annotations

CDC_PREFIX = "/tidb/cdc"

CHANGEFEED_INFO_PREFIX = f"{CDC_PREFIX}/changefeed/info/"
JOB_STATUS_PREFIX = f"{CDC_PREFIX}/job/"
CAPTURE_INFO_PREFIX = f"{CDC_PREFIX}/capture/info/"
TASK_STATUS_PREFIX = f"{CDC_PREFIX}/task/status/"
CAPTURE_OWNER_KEY = f"{CDC_PREFIX}/capture/owner"

# Written by components outside cdcctl; never cleared
GC_SAVED_SAFEPOINT_KEY = "/tidb/store/gcworker/saved_safe_point"
TIMESTAMP_ORACLE_KEY = "/tidb/pd/timestamp"

# Portions of the key space removed by clear-all, in deletion order
MANAGED_PORTIONS: dict[str, str] = {
    "changefeed-info": CHANGEFEED_INFO_PREFIX,
    "changefeed-status": JOB_STATUS_PREFIX,
    "capture-info": CAPTURE_INFO_PREFIX,
    "task-status": TASK_STATUS_PREFIX,
    "owner-election": CAPTURE_OWNER_KEY,
}


def changefeed_info_key(changefeed_id: str) -> str:
    return CHANGEFEED_INFO_PREFIX + changefeed_id


def job_status_key(changefeed_id: str) -> str:
    return JOB_STATUS_PREFIX + changefeed_id


def capture_info_key(capture_id: str) -> str:
    return CAPTURE_INFO_PREFIX + capture_id


def task_status_key(changefeed_id: str, capture_id: str) -> str:
    return f"{TASK_STATUS_PREFIX}{changefeed_id}/{capture_id}"


def split_task_status_key(key: str) -> tuple[str, str]:
    """Return (changefeed_id, capture_id) for a task status key."""
    rest = key[len(TASK_STATUS_PREFIX):]
    changefeed_id, _, capture_id = rest.rpartition("/")
    return changefeed_id, capture_id
