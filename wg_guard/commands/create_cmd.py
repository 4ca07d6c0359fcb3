import argparse
import sys

from ..common import add_common_args, run_with_manager
from ..models import parse_dns


def add_create_cmd(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "create",
        help="Create a new tunnel",
        description="Creates a tunnel with a generated keypair, writes its config and starts the wg-quick unit.",
    )
    p.add_argument("id", help="Tunnel id (interface name)")
    p.add_argument("-a", "--address", required=True, help="CIDR for the tunnel address")
    p.add_argument("-e", "--endpoint", default="", help="Public host:port of the tunnel")
    p.add_argument("-p", "--port", type=int, default=0, help="Listen port for the tunnel")
    p.add_argument("--dns", default=None, help="DNS servers to advertise (comma-separated)")
    p.add_argument("--masquerade", default=None, help="Emit NAT rules masquerading through this interface")
    add_common_args(p)
    p.set_defaults(func=run_create_cmd)


def run_create_cmd(args: argparse.Namespace) -> int:
    tunnel_id = args.id.strip()
    if not tunnel_id:
        print("Tunnel id must be non-empty", file=sys.stderr)
        return 2
    dns_arg = getattr(args, "dns", None)
    dns = parse_dns(dns_arg) if dns_arg else []
    return run_with_manager(
        args,
        lambda m, ctx: m.create(
            ctx,
            tunnel_id,
            address=args.address,
            endpoint=getattr(args, "endpoint", "") or "",
            listen_port=getattr(args, "port", 0) or 0,
            dns=dns,
            masquerade=getattr(args, "masquerade", None),
        ),
    )
