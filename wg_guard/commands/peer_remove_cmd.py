import argparse

from ..common import add_common_args, run_with_manager


def add_peer_remove_cmd(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "peer-remove",
        help="Remove a peer from a tunnel",
        description="Removes a peer by id (a missing id is not an error) and restarts the tunnel.",
    )
    p.add_argument("peer", help="Peer id")
    p.add_argument("-t", "--tunnel", required=True, help="Tunnel id")
    add_common_args(p)
    p.set_defaults(func=run_peer_remove_cmd)


def run_peer_remove_cmd(args: argparse.Namespace) -> int:
    return run_with_manager(args, lambda m, ctx: m.delete_peer(ctx, args.tunnel, args.peer))
