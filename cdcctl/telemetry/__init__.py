"""Telemetry subpackage (lightweight).

Only logging is exposed; cdcctl invocations are short lived so no metrics
endpoint is served.
"""

from .logging import get_logger

__all__ = [
    "get_logger",
]
