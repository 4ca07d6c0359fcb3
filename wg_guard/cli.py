import argparse
from typing import Callable, Optional

from .commands.init_cmd import add_init_cmd
from .commands.create_cmd import add_create_cmd
from .commands.delete_cmd import add_delete_cmd
from .commands.list_cmd import add_list_cmd
from .commands.show_cmd import add_show_cmd
from .commands.peer_add_cmd import add_peer_add_cmd
from .commands.peer_remove_cmd import add_peer_remove_cmd

CommandHandler = Callable[[argparse.Namespace], int]


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="wg-guard",
        description="Manage WireGuard tunnels and their peers.",
    )
    # Subcommands are responsible for their own --config/--dir options

    sub = p.add_subparsers(dest="command", required=True)
    add_init_cmd(sub)  # init does not require pre-existing config
    add_create_cmd(sub)
    add_delete_cmd(sub)
    add_list_cmd(sub)
    add_show_cmd(sub)
    add_peer_add_cmd(sub)
    add_peer_remove_cmd(sub)
    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    handler: Optional[CommandHandler] = getattr(args, "func", None)
    if handler is None:
        parser.error("No subcommand handler attached")
    return handler(args)
