"""cdcctl: control-plane client for changefeeds.

Creates changefeeds and queries/administers the changefeed, capture and task
state that replication workers keep in the coordination store.
"""

__version__ = "0.1.0"

from .changefeed import CreateParams, CreateResult, create_changefeed, parse_options
from .context import CallContext
from .control import ControlCommand, ControlParams, ControlResult, dispatch
from .owner import resolve_owner
from .safepoint import validate_start_ts
from .store import CDCStoreClient, connect

__all__ = [
    "__version__",
    "CallContext",
    "CDCStoreClient",
    "connect",
    "CreateParams",
    "CreateResult",
    "create_changefeed",
    "parse_options",
    "validate_start_ts",
    "resolve_owner",
    "ControlCommand",
    "ControlParams",
    "ControlResult",
    "dispatch",
]
