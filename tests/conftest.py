import sys
import threading
from pathlib import Path

import pytest

# Ensure the package root is importable when running tests without install
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from wg_guard import OperationContext, StateStore, TunnelManager
from wg_guard.errors import CancelledError, ExternalCommandError
from wg_guard.keys import generate_wg_keypair, public_key_from_private


class FakeKeys:
    """Real X25519 keys, with optional delay and failure injection."""

    def __init__(self, delay: float = 0.0, fail: bool = False) -> None:
        self.delay = delay
        self.fail = fail
        self.generated = 0

    def generate_private_key(self, ctx: OperationContext) -> str:
        if self.delay and ctx.wait(self.delay):
            raise CancelledError("generate private key cancelled")
        if self.fail:
            raise ExternalCommandError("wg genkey exited with status 1", output="boom")
        self.generated += 1
        return generate_wg_keypair()[0]

    def derive_public_key(self, ctx: OperationContext, private_key: str) -> str:
        return public_key_from_private(private_key)


class FakeServices:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.fail_on: set[str] = set()
        self._lock = threading.Lock()

    def control(self, ctx: OperationContext, action: str, tunnel_id: str) -> None:
        ctx.check(f"{action} tunnel")
        with self._lock:
            self.calls.append((action, tunnel_id))
        if action in self.fail_on:
            raise ExternalCommandError(
                f"systemctl {action} wg-quick@{tunnel_id} exited with status 1",
                output="Job failed",
            )

    def actions(self, tunnel_id: str) -> list[str]:
        return [a for a, t in self.calls if t == tunnel_id]


@pytest.fixture
def ctx() -> OperationContext:
    return OperationContext.background()


@pytest.fixture
def store(tmp_path) -> StateStore:
    s = StateStore(str(tmp_path / "wireguard"))
    s.init()
    return s


@pytest.fixture
def keys() -> FakeKeys:
    return FakeKeys()


@pytest.fixture
def services() -> FakeServices:
    return FakeServices()


@pytest.fixture
def manager(store, keys, services) -> TunnelManager:
    return TunnelManager(store, keys, services)
