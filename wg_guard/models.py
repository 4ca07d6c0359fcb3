import base64
import copy
import ipaddress
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, NewType, Optional, Tuple

# Granular type aliases
TunnelId = NewType("TunnelId", str)
CIDR = NewType("CIDR", str)
WireGuardKey = NewType("WireGuardKey", str)
PortNumber = NewType("PortNumber", int)

DnsList = list[str]

# wg-quick refuses interface names outside this pattern
_IFACE_NAME_RE = re.compile(r"[A-Za-z0-9_=+.-]{1,15}")


@dataclass()
class Masquerade:
    interface: str = ""


@dataclass()
class Peer:
    id: str = ""
    public_key: WireGuardKey = WireGuardKey("")
    private_key: WireGuardKey = WireGuardKey("")
    allowed_ips: List[CIDR] = field(default_factory=list)
    endpoint: str = ""
    persistent_keepalive: int = 0

    def validate(self) -> List[str]:
        errs: List[str] = []
        if not self.id:
            errs.append("id must be non-empty")
        if not self.public_key:
            errs.append("public_key must be non-empty")
        if not self.allowed_ips:
            errs.append("allowed_ips must be non-empty")
        for ip in self.allowed_ips:
            if not valid_cidr(ip):
                errs.append(f"allowed_ips contains invalid CIDR: {ip}")
        if self.endpoint:
            try:
                split_endpoint(self.endpoint)
            except ValueError as e:
                errs.append(f"endpoint invalid: {e}")
        if self.persistent_keepalive < 0 or self.persistent_keepalive > 65535:
            errs.append(f"persistent_keepalive out of range: {self.persistent_keepalive}")
        return errs


@dataclass()
class Tunnel:
    id: TunnelId = TunnelId("")
    address: CIDR = CIDR("")
    listen_port: PortNumber = PortNumber(0)
    private_key: WireGuardKey = WireGuardKey("")
    public_key: WireGuardKey = WireGuardKey("")
    endpoint: str = ""
    dns: DnsList = field(default_factory=list)
    masquerade: Optional[Masquerade] = None
    peers: List[Peer] = field(default_factory=list)

    def peer(self, peer_id: str) -> Optional[Peer]:
        for p in self.peers:
            if p.id == peer_id:
                return p
        return None

    def validate(self) -> List[str]:
        errs: List[str] = []
        if not self.id:
            errs.append("tunnel.id must be non-empty")
        elif not valid_tunnel_id(self.id):
            errs.append(f"tunnel.id invalid: {self.id}")
        if not self.address:
            errs.append("tunnel.address must be non-empty")
        elif not valid_interface_address(self.address):
            errs.append(f"tunnel.address invalid CIDR: {self.address}")
        port = int(self.listen_port)
        if port < 0 or port > 65535:
            errs.append(f"tunnel.listen_port out of range: {port}")
        if self.masquerade is not None and not self.masquerade.interface:
            errs.append("tunnel.masquerade.interface must be non-empty")
        seen: set[str] = set()
        for idx, p in enumerate(self.peers):
            for e in p.validate():
                errs.append(f"peers[{idx}].{e}")
            if p.id in seen:
                errs.append(f"peers[{idx}].id duplicated: {p.id}")
            seen.add(p.id)
        return errs


def scrub_peer(peer: Peer) -> Peer:
    out = copy.deepcopy(peer)
    out.private_key = WireGuardKey("")
    return out


def scrub_tunnel(tunnel: Tunnel) -> Tunnel:
    """Return a copy of ``tunnel`` with every private key blanked.

    The argument is left untouched, so the stored value keeps its secrets.
    """
    out = copy.deepcopy(tunnel)
    out.private_key = WireGuardKey("")
    out.peers = [scrub_peer(p) for p in out.peers]
    return out


def valid_tunnel_id(value: str) -> bool:
    if value in (".", ".."):
        return False
    return _IFACE_NAME_RE.fullmatch(value) is not None


def valid_interface_address(value: str) -> bool:
    if "/" not in value:
        return False
    try:
        ipaddress.ip_interface(value)
    except ValueError:
        return False
    return True


def valid_cidr(value: str) -> bool:
    try:
        ipaddress.ip_network(value, strict=False)
    except ValueError:
        return False
    return True


def looks_like_wg_key(value: str) -> bool:
    try:
        raw = base64.b64decode(value, validate=True)
        return len(raw) == 32
    except Exception:
        return False


def valid_host_or_ip(value: str) -> bool:
    # Accept IPs
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        pass
    # Accept hostnames: RFC 1035-like, labels of [A-Za-z0-9-], no leading/trailing hyphens, dot-separated
    if len(value) > 253:
        return False
    label_re = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")
    parts = value.split(".")
    if any(not part for part in parts):
        return False
    return all(label_re.match(part) for part in parts)


def split_endpoint(value: str) -> Tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``) into its parts.

    Raises ValueError when either half is missing or invalid.
    """
    if value.startswith("["):
        end = value.find("]")
        if end < 0 or value[end + 1:end + 2] != ":":
            raise ValueError(f"missing port in address: {value}")
        host, port_str = value[1:end], value[end + 2:]
    else:
        host, sep, port_str = value.rpartition(":")
        if not sep:
            raise ValueError(f"missing port in address: {value}")
        if ":" in host:
            raise ValueError(f"too many colons in address: {value}")
    if not host:
        raise ValueError(f"missing host in address: {value}")
    if not valid_host_or_ip(host):
        raise ValueError(f"invalid host: {host}")
    if not port_str.isdigit():
        raise ValueError(f"invalid port: {port_str!r}")
    port = int(port_str)
    if port < 1 or port > 65535:
        raise ValueError(f"port out of range: {port}")
    return host, port


def parse_dns(value: str) -> DnsList:
    parts = [p.strip() for p in value.replace("\n", ",").split(",")]
    return [p for p in parts if p]


# Document conversion


def peer_to_dict(p: Peer) -> Dict[str, Any]:
    return {
        "id": p.id,
        "public-key": p.public_key,
        "private-key": p.private_key,
        "allowed-ips": list(p.allowed_ips),
        "endpoint": p.endpoint,
        "persistent-keepalive": int(p.persistent_keepalive),
    }


def tunnel_to_dict(t: Tunnel) -> Dict[str, Any]:
    return {
        "id": t.id,
        "address": t.address,
        "listen-port": int(t.listen_port),
        "private-key": t.private_key,
        "public-key": t.public_key,
        "endpoint": t.endpoint,
        "dns": list(t.dns),
        "masquerade": {"interface": t.masquerade.interface} if t.masquerade is not None else None,
        "peers": [peer_to_dict(p) for p in t.peers],
    }


def _str(data: Dict[str, Any], key: str, default: str = "") -> str:
    val = data.get(key, default)
    if val is None:
        return default
    if not isinstance(val, str):
        raise ValueError(f"{key} must be a string")
    return val


def _int(data: Dict[str, Any], key: str) -> int:
    val = data.get(key, 0)
    if val is None:
        return 0
    if isinstance(val, bool) or not isinstance(val, int):
        raise ValueError(f"{key} must be an integer")
    return val


def _str_list(data: Dict[str, Any], key: str) -> List[str]:
    val = data.get(key) or []
    if not isinstance(val, list) or not all(isinstance(x, str) for x in val):
        raise ValueError(f"{key} must be a list of strings")
    return list(val)


def parse_peer(data: Any) -> Peer:
    if not isinstance(data, dict):
        raise ValueError("peer entry must be a mapping")
    return Peer(
        id=_str(data, "id"),
        public_key=WireGuardKey(_str(data, "public-key")),
        private_key=WireGuardKey(_str(data, "private-key")),
        allowed_ips=[CIDR(ip) for ip in _str_list(data, "allowed-ips")],
        endpoint=_str(data, "endpoint"),
        persistent_keepalive=_int(data, "persistent-keepalive"),
    )


def parse_tunnel(data: Any) -> Tunnel:
    """Build a Tunnel from its document form; raises ValueError when malformed."""
    if not isinstance(data, dict):
        raise ValueError("tunnel document root must be a mapping")
    masq_map = data.get("masquerade")
    masquerade = None
    if masq_map is not None:
        if not isinstance(masq_map, dict):
            raise ValueError("masquerade must be a mapping")
        masquerade = Masquerade(interface=_str(masq_map, "interface"))
    raw_peers = data.get("peers") or []
    if not isinstance(raw_peers, list):
        raise ValueError("peers must be a list")
    t = Tunnel(
        id=TunnelId(_str(data, "id")),
        address=CIDR(_str(data, "address")),
        listen_port=PortNumber(_int(data, "listen-port")),
        private_key=WireGuardKey(_str(data, "private-key")),
        public_key=WireGuardKey(_str(data, "public-key")),
        endpoint=_str(data, "endpoint"),
        dns=_str_list(data, "dns"),
        masquerade=masquerade,
        peers=[parse_peer(p) for p in raw_peers],
    )
    if not t.id:
        raise ValueError("id is missing")
    if not t.address:
        raise ValueError("address is missing")
    if not t.private_key:
        raise ValueError("private-key is missing")
    return t
