import pytest

from wg_guard import Masquerade, Peer, Tunnel, scrub_tunnel
from wg_guard.models import parse_dns, parse_tunnel, scrub_peer, split_endpoint, tunnel_to_dict, valid_tunnel_id


def make_tunnel() -> Tunnel:
    return Tunnel(
        id="vpn1",
        address="10.0.0.1/24",
        listen_port=51820,
        private_key="secret",
        public_key="public",
        peers=[Peer(id="a", public_key="pa", private_key="sa", allowed_ips=["10.0.0.2/32"])],
    )


def test_scrub_returns_copy_without_secrets():
    t = make_tunnel()
    out = scrub_tunnel(t)
    assert out.private_key == ""
    assert all(p.private_key == "" for p in out.peers)
    assert out.public_key == "public"
    # stored value keeps its secrets
    assert t.private_key == "secret"
    assert t.peers[0].private_key == "sa"


def test_scrub_peer_blanks_only_the_private_key():
    p = Peer(id="a", public_key="pa", private_key="sa", allowed_ips=["10.0.0.2/32"])
    out = scrub_peer(p)
    assert out.private_key == ""
    assert out.public_key == "pa"
    assert out.allowed_ips == ["10.0.0.2/32"]
    assert p.private_key == "sa"


def test_split_endpoint():
    assert split_endpoint("1.2.3.4:51820") == ("1.2.3.4", 51820)
    assert split_endpoint("vpn.example.com:443") == ("vpn.example.com", 443)
    assert split_endpoint("[2001:db8::1]:51820") == ("2001:db8::1", 51820)
    for bad in ("1.2.3.4", ":51820", "1.2.3.4:", "1.2.3.4:70000", "2001:db8::1:51820", "bad host!:1"):
        with pytest.raises(ValueError):
            split_endpoint(bad)


def test_valid_tunnel_id():
    assert valid_tunnel_id("wg0")
    assert valid_tunnel_id("vpn-1.a")
    assert not valid_tunnel_id("")
    assert not valid_tunnel_id("..")
    assert not valid_tunnel_id("a/b")
    assert not valid_tunnel_id("x" * 16)


def test_parse_dns():
    assert parse_dns("1.1.1.1, 8.8.8.8\n9.9.9.9,") == ["1.1.1.1", "8.8.8.8", "9.9.9.9"]


def test_tunnel_validation_reports_fields():
    t = Tunnel(id="bad id", address="nope", listen_port=70000, masquerade=Masquerade(interface=""))
    t.peers = [Peer(id="a", public_key="k", allowed_ips=["x"]), Peer(id="a", public_key="", allowed_ips=[])]
    text = "\n".join(t.validate())
    assert "tunnel.id invalid" in text
    assert "tunnel.address invalid CIDR" in text
    assert "listen_port out of range" in text
    assert "masquerade.interface must be non-empty" in text
    assert "peers[0].allowed_ips contains invalid CIDR" in text
    assert "peers[1].id duplicated" in text
    assert "peers[1].public_key must be non-empty" in text


def test_document_roundtrip_keeps_empty_vs_absent():
    t = make_tunnel()
    assert parse_tunnel(tunnel_to_dict(t)) == t
    t.masquerade = Masquerade(interface="eth0")
    t.dns = ["1.1.1.1"]
    assert parse_tunnel(tunnel_to_dict(t)) == t


def test_parse_tunnel_rejects_malformed():
    data = tunnel_to_dict(make_tunnel())
    for key, value in (("listen-port", "x"), ("peers", "x"), ("private-key", None), ("dns", "1.1.1.1")):
        broken = dict(data)
        broken[key] = value
        with pytest.raises(ValueError):
            parse_tunnel(broken)
    with pytest.raises(ValueError):
        parse_tunnel(["not", "a", "mapping"])
