import argparse
import os
import sys

from ..config import ManagerConfig
from ..keys import KEY_BACKENDS


def add_init_cmd(subparsers: argparse._SubParsersAction) -> None:
    init = subparsers.add_parser(
        "init",
        help="Generate a manager config YAML",
        description="Generate a manager config YAML. Values can come from env (WGGUARD_*) and flags.",
    )
    init.add_argument(
        "-o",
        "--output",
        default=os.environ.get("WGGUARD_CONFIG", "guard.yml"),
        help="Path to write the generated config (env: WGGUARD_CONFIG). Default: guard.yml",
    )
    init.add_argument(
        "--overwrite",
        action="store_true",
        help="Overwrite output file if it exists",
    )
    init.add_argument("-d", "--dir", default=None, help="WireGuard configuration directory (env: WGGUARD_DIR).")
    init.add_argument("--key-backend", choices=sorted(KEY_BACKENDS), default=None)
    init.add_argument("--timeout", type=float, default=None)
    init.add_argument("--log-level", default=None)
    init.set_defaults(func=run_init_cmd)


def run_init_cmd(args: argparse.Namespace) -> int:
    out_path = args.output
    if os.path.exists(out_path) and not args.overwrite:
        print(f"Refusing to overwrite existing file: {out_path}. Use --overwrite to replace.", file=sys.stderr)
        return 2

    cfg = ManagerConfig.from_env(os.environ)
    cfg.apply_args_overrides(args)

    errs = cfg.validate()
    if errs:
        print("Config validation failed:", file=sys.stderr)
        for e in errs:
            print(f"- {e}", file=sys.stderr)
        return 2

    cfg.write_file(out_path, overwrite=args.overwrite)
    print(f"Config written to {out_path}")
    return 0
