from .config import ManagerConfig
from .context import OperationContext
from .errors import (
    GuardError,
    ValidationError,
    ConflictError,
    TunnelExistsError,
    PeerExistsError,
    NotFoundError,
    CorruptStateError,
    StorageError,
    ExternalCommandError,
    CancelledError,
)
from .keys import CryptographyKeyGenerator, WgToolKeyGenerator
from .manager import TunnelManager
from .models import Tunnel, Peer, Masquerade, TunnelId, CIDR, WireGuardKey, PortNumber, scrub_tunnel
from .render import render_tunnel_conf
from .service import SystemdServiceControl
from .store import StateStore

__all__ = [
    "ManagerConfig",
    "OperationContext",
    "GuardError",
    "ValidationError",
    "ConflictError",
    "TunnelExistsError",
    "PeerExistsError",
    "NotFoundError",
    "CorruptStateError",
    "StorageError",
    "ExternalCommandError",
    "CancelledError",
    "CryptographyKeyGenerator",
    "WgToolKeyGenerator",
    "TunnelManager",
    "Tunnel",
    "Peer",
    "Masquerade",
    "TunnelId",
    "CIDR",
    "WireGuardKey",
    "PortNumber",
    "scrub_tunnel",
    "render_tunnel_conf",
    "SystemdServiceControl",
    "StateStore",
]
