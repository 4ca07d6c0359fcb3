import base64
import binascii
import codecs
from typing import Protocol

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey

from .context import OperationContext
from .errors import ExternalCommandError
from .proc import run_command


class KeyGenerator(Protocol):
    def generate_private_key(self, ctx: OperationContext) -> str: ...

    def derive_public_key(self, ctx: OperationContext, private_key: str) -> str: ...


def _b64(raw: bytes) -> str:
    return codecs.encode(raw, "base64").decode("utf8").strip()


def public_key_from_private(private_key: str) -> str:
    priv_raw = base64.b64decode(private_key, validate=True)
    pub_bytes = (
        X25519PrivateKey.from_private_bytes(priv_raw)
        .public_key()
        .public_bytes(encoding=serialization.Encoding.Raw, format=serialization.PublicFormat.Raw)
    )
    return _b64(pub_bytes)


def generate_wg_keypair() -> tuple[str, str]:
    """Generate a WireGuard (X25519) keypair as base64 strings using cryptography.

    Matches `wg genkey | wg pubkey` semantics: 32-byte raw keys, Base64 encoded.
    """
    private_key = X25519PrivateKey.generate()
    priv_bytes = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    pub_bytes = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return _b64(priv_bytes), _b64(pub_bytes)


class CryptographyKeyGenerator:
    """In-process key generation; needs no wireguard-tools on the host."""

    def generate_private_key(self, ctx: OperationContext) -> str:
        ctx.check("generate private key")
        priv, _ = generate_wg_keypair()
        return priv

    def derive_public_key(self, ctx: OperationContext, private_key: str) -> str:
        ctx.check("derive public key")
        try:
            return public_key_from_private(private_key)
        except (binascii.Error, ValueError) as e:
            raise ExternalCommandError(f"derive public key: {e}") from e


class WgToolKeyGenerator:
    """Key generation through ``wg genkey`` / ``wg pubkey``."""

    def __init__(self, wg: str = "wg") -> None:
        self.wg = wg

    def generate_private_key(self, ctx: OperationContext) -> str:
        return run_command(ctx, [self.wg, "genkey"]).strip()

    def derive_public_key(self, ctx: OperationContext, private_key: str) -> str:
        return run_command(ctx, [self.wg, "pubkey"], input=private_key + "\n").strip()


KEY_BACKENDS = {
    "cryptography": CryptographyKeyGenerator,
    "wg": WgToolKeyGenerator,
}
