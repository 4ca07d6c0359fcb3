from .models import Tunnel

_POST_UP = "iptables -A FORWARD -i %i -j ACCEPT; iptables -t nat -A POSTROUTING -o {iface} -j MASQUERADE"
_POST_DOWN = "iptables -D FORWARD -i %i -j ACCEPT; iptables -t nat -D POSTROUTING -o {iface} -j MASQUERADE"


def render_tunnel_conf(t: Tunnel) -> str:
    """Render ``t`` as a wg-quick configuration document.

    Optional lines are left out entirely when their value is empty or zero.
    The output depends on nothing but ``t``.
    """
    lines: list[str] = []

    lines.append("[Interface]\n")
    lines.append(f"PrivateKey = {t.private_key}\n")
    if t.listen_port:
        lines.append(f"ListenPort = {int(t.listen_port)}\n")
    lines.append(f"Address = {t.address}\n")
    if t.dns:
        lines.append(f"DNS = {', '.join(t.dns)}\n")
    if t.masquerade is not None:
        iface = t.masquerade.interface
        lines.append("\n")
        lines.append(f"PostUp = {_POST_UP.format(iface=iface)}\n")
        lines.append(f"PostDown = {_POST_DOWN.format(iface=iface)}\n")

    for p in t.peers:
        # comment is a human anchor only, never parsed back
        lines.append(f"\n# {p.id}\n")
        lines.append("[Peer]\n")
        lines.append(f"PublicKey = {p.public_key}\n")
        lines.append(f"AllowedIPs = {', '.join(p.allowed_ips)}\n")
        if p.endpoint:
            lines.append(f"Endpoint = {p.endpoint}\n")
        if p.persistent_keepalive:
            lines.append(f"PersistentKeepalive = {int(p.persistent_keepalive)}\n")

    return "".join(lines)
