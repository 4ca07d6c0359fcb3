import argparse

from ..common import add_common_args, run_with_manager


def add_show_cmd(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser("show", help="Show one tunnel", description="Prints a single tunnel as JSON.")
    p.add_argument("id", help="Tunnel id")
    add_common_args(p)
    p.set_defaults(func=run_show_cmd)


def run_show_cmd(args: argparse.Namespace) -> int:
    return run_with_manager(args, lambda m, ctx: m.get(ctx, args.id))
