import contextlib
import copy
import logging
import threading
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .config import ManagerConfig
from .context import OperationContext
from .errors import GuardError, NotFoundError, PeerExistsError, ValidationError
from .keys import KEY_BACKENDS, KeyGenerator
from .models import (
    CIDR,
    Masquerade,
    Peer,
    PortNumber,
    Tunnel,
    TunnelId,
    WireGuardKey,
    looks_like_wg_key,
    scrub_tunnel,
    split_endpoint,
    valid_cidr,
    valid_interface_address,
    valid_tunnel_id,
)
from .render import render_tunnel_conf
from .service import DISABLE, ENABLE, RESTART, START, STOP, ServiceControl, SystemdServiceControl
from .store import StateStore

log = logging.getLogger(__name__)


def _fields(tunnel_id: str, peer_id: Optional[str] = None) -> str:
    if peer_id is None:
        return f"tunnel={tunnel_id}"
    return f"tunnel={tunnel_id} peer={peer_id}"


class TunnelManager:
    """Sequences the tunnel and peer lifecycle against the state store.

    Mutating operations on one tunnel id are serialized through a per-id
    lock, so concurrent peer changes cannot overwrite each other. Different
    ids never contend. Reads take no lock and see the last completed write.

    Failures are raised as GuardError subclasses annotated with the failing
    step. Apart from the directory cleanup in ``create`` nothing is rolled
    back: a tunnel whose service failed to (re)start stays persisted.
    """

    def __init__(self, store: StateStore, keys: KeyGenerator, services: ServiceControl) -> None:
        self.store = store
        self.keys = keys
        self.services = services
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_config(cls, cfg: ManagerConfig) -> "TunnelManager":
        store = StateStore(cfg.dir, reserved_id=cfg.reserved_tunnel)
        store.init()
        return cls(store, KEY_BACKENDS[cfg.key_backend](), SystemdServiceControl())

    def lock_for(self, tunnel_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(tunnel_id)
            if lock is None:
                lock = self._locks[tunnel_id] = threading.Lock()
            return lock

    # Operations

    def create(
        self,
        ctx: OperationContext,
        tunnel_id: str,
        address: str,
        endpoint: str = "",
        listen_port: int = 0,
        dns: Optional[Sequence[str]] = None,
        masquerade: Optional[str] = None,
    ) -> Tunnel:
        self._validate_tunnel_id(tunnel_id)
        if not address:
            raise ValidationError("address cannot be empty")
        if not valid_interface_address(address):
            raise ValidationError(f"address is not a valid CIDR: {address}")
        port = int(listen_port or 0)
        if port < 0 or port > 65535:
            raise ValidationError(f"listen port out of range: {port}")
        host = ""
        if endpoint:
            try:
                host, endpoint_port = split_endpoint(endpoint)
            except ValueError as e:
                raise ValidationError(f"cannot split endpoint into host and port: {e}") from e
            if port and port != endpoint_port:
                raise ValidationError(
                    f"listen port {port} does not match endpoint port {endpoint_port}"
                )
            port = endpoint_port
        if masquerade is not None and not masquerade:
            raise ValidationError("masquerade interface cannot be empty")

        fields = _fields(tunnel_id)
        with self.lock_for(tunnel_id):
            with self._step(ctx, "create tunnel directory", fields):
                self.store.create_dir(tunnel_id)
            try:
                with self._step(ctx, "new private key", fields):
                    key = self.keys.generate_private_key(ctx)
                with self._step(ctx, "new public key", fields):
                    pub = self.keys.derive_public_key(ctx, key)
                t = Tunnel(
                    id=TunnelId(tunnel_id),
                    address=CIDR(address),
                    listen_port=PortNumber(port),
                    private_key=WireGuardKey(key),
                    public_key=WireGuardKey(pub),
                    endpoint=host,
                    dns=list(dns or []),
                    masquerade=Masquerade(interface=masquerade) if masquerade else None,
                )
                self._persist(ctx, t, fields)
            except Exception as e:
                self._rollback_create(tunnel_id, e)
                raise
            self._control(ctx, ENABLE, tunnel_id, fields)
            self._control(ctx, START, tunnel_id, fields)
        log.info("tunnel created (%s)", fields)
        return scrub_tunnel(t)

    def add_peer(
        self,
        ctx: OperationContext,
        tunnel_id: str,
        peer_id: str,
        address: str,
        public_key: str = "",
        endpoint: str = "",
        persistent_keepalive: int = 0,
    ) -> Tuple[Tunnel, Peer]:
        """Append a peer allowed to source ``address`` and restart the tunnel.

        Without ``public_key`` a keypair is generated and the returned Peer
        carries its private key; that copy is the caller's only one that is
        not scrubbed.
        """
        self._validate_tunnel_id(tunnel_id)
        if not peer_id:
            raise ValidationError("peer id cannot be empty")
        if not address or not valid_cidr(address):
            raise ValidationError(f"peer address is not a valid CIDR: {address!r}")
        if public_key and not looks_like_wg_key(public_key):
            raise ValidationError("peer public key is not a valid WireGuard key")
        if endpoint:
            try:
                split_endpoint(endpoint)
            except ValueError as e:
                raise ValidationError(f"peer endpoint invalid: {e}") from e
        if persistent_keepalive < 0 or persistent_keepalive > 65535:
            raise ValidationError(f"persistent keepalive out of range: {persistent_keepalive}")

        fields = _fields(tunnel_id, peer_id)
        with self.lock_for(tunnel_id):
            with self._step(ctx, "load tunnel", fields):
                t = self.store.load(tunnel_id)
            if t.peer(peer_id) is not None:
                log.error("peer exists (%s)", fields)
                raise PeerExistsError(tunnel_id, peer_id)
            private_key = ""
            if not public_key:
                with self._step(ctx, "new private key", fields):
                    private_key = self.keys.generate_private_key(ctx)
                with self._step(ctx, "new public key", fields):
                    public_key = self.keys.derive_public_key(ctx, private_key)
            peer = Peer(
                id=peer_id,
                public_key=WireGuardKey(public_key),
                private_key=WireGuardKey(private_key),
                allowed_ips=[CIDR(address)],
                endpoint=endpoint,
                persistent_keepalive=persistent_keepalive,
            )
            t.peers.append(copy.deepcopy(peer))
            self._persist(ctx, t, fields)
            self._control(ctx, RESTART, tunnel_id, fields)
        log.info("peer added (%s)", fields)
        return scrub_tunnel(t), peer

    def delete_peer(self, ctx: OperationContext, tunnel_id: str, peer_id: str) -> Tunnel:
        self._validate_tunnel_id(tunnel_id)
        if not peer_id:
            raise ValidationError("peer id cannot be empty")

        fields = _fields(tunnel_id, peer_id)
        with self.lock_for(tunnel_id):
            with self._step(ctx, "load tunnel", fields):
                t = self.store.load(tunnel_id)
            before = len(t.peers)
            t.peers = [p for p in t.peers if p.id != peer_id]
            if len(t.peers) == before:
                log.info("peer not present, nothing removed (%s)", fields)
            self._persist(ctx, t, fields)
            self._control(ctx, RESTART, tunnel_id, fields)
        log.info("delete peer (%s)", fields)
        return scrub_tunnel(t)

    def delete(self, ctx: OperationContext, tunnel_id: str) -> None:
        self._validate_tunnel_id(tunnel_id)

        fields = _fields(tunnel_id)
        with self.lock_for(tunnel_id):
            ctx.check("delete tunnel")
            if not self.store.exists(tunnel_id) and not self.store.conf_exists(tunnel_id):
                raise NotFoundError(f"tunnel {tunnel_id} not found")
            self._control(ctx, DISABLE, tunnel_id, fields)
            self._control(ctx, STOP, tunnel_id, fields)
            with self._step(ctx, "remove data path", fields):
                self.store.remove_dir(tunnel_id)
            with self._step(ctx, "remove configuration", fields):
                self.store.remove_conf(tunnel_id)
        log.info("delete tunnel (%s)", fields)

    def list(self, ctx: OperationContext) -> List[Tunnel]:
        ctx.check("list tunnels")
        return [scrub_tunnel(t) for t in self.store.list()]

    def get(self, ctx: OperationContext, tunnel_id: str) -> Tunnel:
        self._validate_tunnel_id(tunnel_id)
        ctx.check("load tunnel")
        return scrub_tunnel(self.store.load(tunnel_id))

    # Helpers

    def _validate_tunnel_id(self, tunnel_id: str) -> None:
        if not tunnel_id:
            raise ValidationError("tunnel id cannot be empty")
        if not valid_tunnel_id(tunnel_id):
            raise ValidationError(f"tunnel id is not a valid interface name: {tunnel_id!r}")
        if tunnel_id == self.store.reserved_id:
            raise ValidationError(f"tunnel id {tunnel_id} is reserved")

    @contextlib.contextmanager
    def _step(self, ctx: OperationContext, what: str, fields: str) -> Iterator[None]:
        try:
            ctx.check(what)
            yield
        except GuardError as e:
            log.error("%s (%s): %s", what, fields, e)
            raise e.annotate(what)

    def _persist(self, ctx: OperationContext, t: Tunnel, fields: str) -> None:
        with self._step(ctx, "save tunnel", fields):
            self.store.save(t)
        with self._step(ctx, "save config", fields):
            self.store.write_conf(t.id, render_tunnel_conf(t))

    def _control(self, ctx: OperationContext, action: str, tunnel_id: str, fields: str) -> None:
        with self._step(ctx, f"{action} tunnel", fields):
            self.services.control(ctx, action, tunnel_id)

    def _rollback_create(self, tunnel_id: str, err: BaseException) -> None:
        first: Optional[GuardError] = None
        try:
            self.store.remove_dir(tunnel_id)
        except GuardError as cleanup:
            log.warning("rollback of tunnel %s failed: %s", tunnel_id, cleanup)
            first = cleanup
        try:
            if self.store.conf_exists(tunnel_id):
                self.store.remove_conf(tunnel_id)
        except GuardError as cleanup:
            log.warning("rollback of tunnel %s failed: %s", tunnel_id, cleanup)
            first = first or cleanup
        if first is not None and isinstance(err, GuardError):
            err.cleanup_error = first
