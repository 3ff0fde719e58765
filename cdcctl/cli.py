"""cdcctl CLI."""
from __future__ import annotations

import argparse
import sys
from typing import List

from .changefeed import CreateParams, create_changefeed
from .context import CallContext
from .control import ControlParams, ControlCommand, command_tokens, dispatch
from .core.errors import CdcCtlError, UsageError
from .presenter import emit, render_control, render_created
from .safepoint import MAX_UINT64
from .store.client import CDCStoreClient
from .store.kv import DEFAULT_ADDR, connect
from .telemetry.logging import get_logger
from .utils.env import env_float, env_str

_log = get_logger("cdcctl.cli")


def _uint64(value: str) -> int:
    try:
        v = int(value, 10)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an unsigned integer: {value!r}") from None
    if v < 0 or v > MAX_UINT64:
        raise argparse.ArgumentTypeError(f"out of range for uint64: {value}")
    return v


def _flatten_opts(values: List[str] | None) -> List[str]:
    """--opts may be repeated and each value may hold comma-separated tokens."""
    out: List[str] = []
    for v in values or []:
        out.extend(tok for tok in v.split(",") if tok)
    return out


def _open_store(addr: str, ctx: CallContext) -> CDCStoreClient:
    return CDCStoreClient(connect(addr, ctx=ctx, op_timeout=ctx.remaining()))


def _cmd_create(args: argparse.Namespace) -> int:
    ctx = CallContext(args.timeout)
    params = CreateParams(
        sink_uri=args.sink_uri,
        start_ts=args.start_ts,
        target_ts=args.target_ts,
        config_file=args.config or None,
        options=_flatten_opts(args.opts),
        changefeed_id=args.changefeed_id or None,
    )
    store = _open_store(args.store_addr, ctx)
    try:
        result = create_changefeed(store, ctx, params)
    finally:
        store.close()
    emit(render_created(result))
    return 0


def _cmd_ctrl(args: argparse.Namespace) -> int:
    command = ControlCommand.parse(args.cmd)
    if command is None:
        emit(f"unknown controller command: {args.cmd}")
        return 2
    ctx = CallContext(args.timeout)
    store = _open_store(args.store_addr, ctx)
    try:
        result = dispatch(
            store,
            ctx,
            command,
            ControlParams(changefeed_id=args.changefeed_id, capture_id=args.capture_id),
        )
    finally:
        store.close()
    emit(render_control(result))
    return 0


def _add_common(sp: argparse.ArgumentParser) -> None:
    sp.add_argument(
        "--store-addr",
        "--pd-addr",
        dest="store_addr",
        default=env_str("CDCCTL_STORE_ADDR", DEFAULT_ADDR),
        help="Comma-separated coordination store endpoints (or CDCCTL_STORE_ADDR)",
    )
    sp.add_argument(
        "--timeout",
        type=float,
        default=env_float("CDCCTL_TIMEOUT", 10.0, minimum=0.1),
        help="Deadline in seconds for the whole command (or CDCCTL_TIMEOUT)",
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="cdcctl", description="Changefeed control-plane client")
    sub = p.add_subparsers(dest="cmd_group", required=True)

    # create
    sp = sub.add_parser("create", aliases=["cli"], help="Create a changefeed")
    _add_common(sp)
    sp.add_argument("--changefeed-id", default="", help="Changefeed ID (generated when empty)")
    sp.add_argument("--start-ts", type=_uint64, default=0, help="Start ts of changefeed (0: current time)")
    sp.add_argument("--target-ts", type=_uint64, default=0, help="Target ts of changefeed (0: unbounded)")
    sp.add_argument("--sink-uri", default="root@tcp(127.0.0.1:3306)/", help="Sink URI")
    sp.add_argument("--config", default="", help="Path of the replication configuration file (TOML)")
    sp.add_argument("--opts", action="append", default=None, help="Options in key=value format (repeatable)")
    sp.set_defaults(func=_cmd_create)

    # ctrl
    sp = sub.add_parser("ctrl", aliases=["control"], help="Query or administer changefeeds and captures")
    _add_common(sp)
    sp.add_argument("--changefeed-id", default="", help="Changefeed ID")
    sp.add_argument("--capture-id", default="", help="Capture ID")
    sp.add_argument(
        "--cmd",
        default=ControlCommand.CAPTURE_LIST.value,
        help=f"Controller command, one of: {', '.join(command_tokens())}",
    )
    sp.set_defaults(func=_cmd_ctrl)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return int(args.func(args))
    except UsageError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except CdcCtlError as e:
        _log.debug(f"{args.cmd_group} failed", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
