import contextlib
import dataclasses
import json
import logging
import os
import signal
import sys
import threading
from typing import Any, Callable, Iterator, Optional

from .config import ManagerConfig
from .context import OperationContext
from .errors import GuardError
from .keys import KEY_BACKENDS
from .manager import TunnelManager

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

Operation = Callable[[TunnelManager, OperationContext], Any]


def resolve_config_path(args) -> Optional[str]:
    return getattr(args, "config", None) or os.environ.get("WGGUARD_CONFIG")


def load_config(args) -> Optional[ManagerConfig]:
    path = resolve_config_path(args)
    if path and os.path.exists(path):
        try:
            cfg = ManagerConfig.read_file(path)
        except Exception as e:
            print(f"Failed to parse config: {e}", file=sys.stderr)
            return None
    elif getattr(args, "config", None):
        print(f"Config file not found: {path}", file=sys.stderr)
        return None
    else:
        cfg = ManagerConfig.from_env(os.environ)
    cfg.apply_args_overrides(args)
    errs = cfg.validate()
    if errs:
        print("Invalid configuration:", file=sys.stderr)
        for e in errs:
            print(f"- {e}", file=sys.stderr)
        return None
    return cfg


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stderr,
    )


def build_manager(cfg: ManagerConfig) -> TunnelManager:
    return TunnelManager.from_config(cfg)


@contextlib.contextmanager
def operation_context(cfg: ManagerConfig) -> Iterator[OperationContext]:
    """Context for one CLI operation; SIGINT/SIGTERM cancel it."""
    ctx = OperationContext(timeout=cfg.timeout or None)
    previous = {}
    if threading.current_thread() is threading.main_thread():
        for sig in (signal.SIGINT, signal.SIGTERM):
            previous[sig] = signal.signal(sig, lambda *_: ctx.cancel())
    try:
        yield ctx
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def to_jsonable(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(x) for x in obj]
    if isinstance(obj, dict):
        return {k: to_jsonable(v) for k, v in obj.items()}
    return obj


def print_json(obj: Any) -> None:
    print(json.dumps(to_jsonable(obj), indent=2))


def run_with_manager(args, op: Operation) -> int:
    cfg = load_config(args)
    if cfg is None:
        return 2
    configure_logging(cfg.log_level)
    try:
        manager = build_manager(cfg)
        with operation_context(cfg) as ctx:
            result = op(manager, ctx)
    except GuardError as e:
        print(str(e), file=sys.stderr)
        return 2
    if result is not None:
        print_json(result)
    return 0


def add_common_args(p) -> None:
    p.add_argument(
        "-c",
        "--config",
        default=None,
        help="Path to manager config file (env: WGGUARD_CONFIG)",
    )
    p.add_argument(
        "-d",
        "--dir",
        default=None,
        help="WireGuard configuration directory (env: WGGUARD_DIR). Default: /etc/wireguard",
    )
    p.add_argument("--timeout", type=float, default=None, help="Operation deadline in seconds (0 disables)")
    p.add_argument(
        "--key-backend",
        choices=sorted(KEY_BACKENDS),
        default=None,
        help="Key generation backend (env: WGGUARD_KEY_BACKEND). Default: cryptography",
    )
    p.add_argument("--debug", action="store_true", help="Enable debug output in the logs")
