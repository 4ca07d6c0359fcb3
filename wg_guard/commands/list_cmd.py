import argparse

from ..common import add_common_args, run_with_manager


def add_list_cmd(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser("list", help="List all tunnels", description="Prints every managed tunnel as JSON.")
    add_common_args(p)
    p.set_defaults(func=run_list_cmd)


def run_list_cmd(args: argparse.Namespace) -> int:
    # nothing is printed when there are no tunnels
    return run_with_manager(args, lambda m, ctx: m.list(ctx) or None)
