"""Common exceptions for cdcctl.

Every error carries a human readable message plus a ``details`` mapping with
the operation, changefeed/capture ids or keys involved, so the text
representation alone is enough to act on.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional


class CdcCtlError(Exception):
    def __init__(self, message: str, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            ctx = " ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} [{ctx}]"
        return self.message


class ValidationError(CdcCtlError):
    """Caller input is wrong; nothing was persisted."""


class StaleStartTsError(ValidationError):
    def __init__(self, start_ts: int, safepoint: int) -> None:
        self.start_ts = start_ts
        self.safepoint = safepoint
        super().__init__(
            f"startTs {start_ts} less than gcSafePoint {safepoint}",
            {"start_ts": start_ts, "safepoint": safepoint},
        )


class UnknownConfigFieldError(ValidationError):
    def __init__(self, component: str, path: str, fields: List[str]) -> None:
        self.component = component
        self.path = path
        self.fields = list(fields)
        super().__init__(
            f"component {component}'s config file {path} contained unknown "
            f"configuration options: {', '.join(self.fields)}"
        )


class ConfigurationError(CdcCtlError):
    pass


class UsageError(CdcCtlError):
    pass


class StoreError(CdcCtlError):
    pass


class StoreConnectionError(StoreError):
    pass


class NotFoundError(StoreError):
    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found", {"key": key})


class MalformedValueError(StoreError):
    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        super().__init__(f"malformed value stored under {key}: {reason}", {"key": key})


class MalformedSafepointError(StoreError):
    def __init__(self, raw: bytes) -> None:
        self.raw = raw
        super().__init__(f"gc safepoint is not an unsigned integer: {raw!r}")


class ClearAllError(StoreError):
    def __init__(self, failed: Mapping[str, str], cleared: Mapping[str, int]) -> None:
        self.failed = dict(failed)
        self.cleared = dict(cleared)
        parts = ", ".join(f"{name} ({cause})" for name, cause in self.failed.items())
        super().__init__(
            f"clear-all could not remove: {parts}",
            {"cleared": ",".join(self.cleared) or "-"},
        )


class OperationCancelled(CdcCtlError):
    pass


class DeadlineExceeded(CdcCtlError):
    pass
