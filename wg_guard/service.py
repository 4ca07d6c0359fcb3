from typing import Protocol

from .context import OperationContext
from .proc import run_command

ENABLE = "enable"
START = "start"
RESTART = "restart"
STOP = "stop"
DISABLE = "disable"

ACTIONS = (ENABLE, START, RESTART, STOP, DISABLE)


class ServiceControl(Protocol):
    def control(self, ctx: OperationContext, action: str, tunnel_id: str) -> None: ...


class SystemdServiceControl:
    """Drives the ``wg-quick@<id>`` systemd unit for a tunnel.

    systemctl already treats enabling an enabled unit (or disabling a
    disabled one) as success, so no extra tolerance is added here.
    """

    def __init__(self, systemctl: str = "systemctl", unit_template: str = "wg-quick@{id}") -> None:
        self.systemctl = systemctl
        self.unit_template = unit_template

    def unit(self, tunnel_id: str) -> str:
        return self.unit_template.format(id=tunnel_id)

    def control(self, ctx: OperationContext, action: str, tunnel_id: str) -> None:
        if action not in ACTIONS:
            raise ValueError(f"unknown service action: {action}")
        run_command(ctx, [self.systemctl, action, self.unit(tunnel_id)])
