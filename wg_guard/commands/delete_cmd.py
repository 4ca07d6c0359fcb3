import argparse

from ..common import add_common_args, run_with_manager


def add_delete_cmd(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "delete",
        help="Delete a tunnel",
        description="Disables and stops the wg-quick unit, then removes the tunnel state and config.",
    )
    p.add_argument("id", help="Tunnel id")
    add_common_args(p)
    p.set_defaults(func=run_delete_cmd)


def run_delete_cmd(args: argparse.Namespace) -> int:
    return run_with_manager(args, lambda m, ctx: m.delete(ctx, args.id))
