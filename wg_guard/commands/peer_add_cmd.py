import argparse

from ..common import add_common_args, run_with_manager


def add_peer_add_cmd(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "peer-add",
        help="Add a peer to a tunnel",
        description="Adds a peer (generating its keypair unless --key is given) and restarts the tunnel.",
    )
    p.add_argument("peer", help="Peer id")
    p.add_argument("-t", "--tunnel", required=True, help="Tunnel id")
    p.add_argument("-i", "--ip", required=True, help="IP CIDR for the peer")
    p.add_argument("-k", "--key", default="", help="Public key of the peer")
    p.add_argument("--endpoint", default="", help="Peer host:port")
    p.add_argument("--keepalive", type=int, default=0, help="PersistentKeepalive interval in seconds")
    add_common_args(p)
    p.set_defaults(func=run_peer_add_cmd)


def run_peer_add_cmd(args: argparse.Namespace) -> int:
    def op(m, ctx):
        tunnel, peer = m.add_peer(
            ctx,
            args.tunnel,
            args.peer,
            args.ip,
            public_key=getattr(args, "key", "") or "",
            endpoint=getattr(args, "endpoint", "") or "",
            persistent_keepalive=getattr(args, "keepalive", 0) or 0,
        )
        return {"tunnel": tunnel, "peer": peer}

    return run_with_manager(args, op)
