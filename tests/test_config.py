from types import SimpleNamespace

import pytest

from wg_guard import ManagerConfig, TunnelManager, WgToolKeyGenerator
from wg_guard.config import parse_manager_config, to_yaml_dict
from wg_guard.store import dump_yaml, load_yaml


def test_from_env_parsing():
    env = {
        "WGGUARD_DIR": "/tmp/wg",
        "WGGUARD_RESERVED_TUNNEL": "mgr0",
        "WGGUARD_KEY_BACKEND": "wg",
        "WGGUARD_TIMEOUT": "12.5",
        "WGGUARD_LOG_LEVEL": "debug",
    }
    cfg = ManagerConfig.from_env(env)
    assert cfg.dir == "/tmp/wg"
    assert cfg.reserved_tunnel == "mgr0"
    assert cfg.key_backend == "wg"
    assert cfg.timeout == 12.5
    assert cfg.validate() == []


def test_defaults_and_bad_timeout_env():
    cfg = ManagerConfig.from_env({"WGGUARD_TIMEOUT": "soon"})
    assert cfg.dir == "/etc/wireguard"
    assert cfg.reserved_tunnel == "guard0"
    assert cfg.key_backend == "cryptography"
    assert cfg.timeout == 30.0


def test_apply_args_overrides():
    cfg = ManagerConfig.from_env({})
    cfg.apply_args_overrides(SimpleNamespace(dir="/srv/wg", key_backend="wg", timeout=5, debug=True))
    assert cfg.dir == "/srv/wg"
    assert cfg.key_backend == "wg"
    assert cfg.timeout == 5.0
    assert cfg.log_level == "DEBUG"


def test_validation_catches_errors():
    cfg = ManagerConfig(dir="", reserved_tunnel="bad id", key_backend="magic", timeout=-1, log_level="chatty")
    text = "\n".join(cfg.validate())
    assert "dir must be non-empty" in text
    assert "reserved_tunnel invalid" in text
    assert "key_backend must be one of" in text
    assert "timeout must be >= 0" in text
    assert "log_level unknown" in text
    with pytest.raises(ValueError):
        cfg.validate_or_raise()


def test_yaml_roundtrip(tmp_path):
    cfg = ManagerConfig(dir=str(tmp_path), key_backend="wg", timeout=3.0)
    assert parse_manager_config(load_yaml(dump_yaml(to_yaml_dict(cfg)))) == cfg
    p = tmp_path / "guard.yml"
    cfg.write_file(str(p))
    assert ManagerConfig.read_file(str(p)) == cfg
    with pytest.raises(FileExistsError):
        cfg.write_file(str(p))


def test_manager_from_config_creates_dir(tmp_path):
    root = tmp_path / "state"
    mgr = TunnelManager.from_config(ManagerConfig(dir=str(root), key_backend="wg"))
    assert root.is_dir()
    assert isinstance(mgr.keys, WgToolKeyGenerator)
    assert mgr.store.reserved_id == "guard0"


def test_init_writes_config(tmp_path, monkeypatch):
    from wg_guard.commands.init_cmd import run_init_cmd

    monkeypatch.delenv("WGGUARD_DIR", raising=False)
    out = tmp_path / "guard.yml"
    args = SimpleNamespace(output=str(out), overwrite=False, dir=str(tmp_path / "wg"), key_backend=None, timeout=7, log_level=None)
    assert run_init_cmd(args) == 0
    cfg = ManagerConfig.read_file(str(out))
    assert cfg.dir == str(tmp_path / "wg")
    assert cfg.timeout == 7.0
    # refuses to clobber without --overwrite
    assert run_init_cmd(args) == 2
