import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from .keys import KEY_BACKENDS
from .models import valid_tunnel_id
from .store import DEFAULT_RESERVED_ID, dump_yaml, load_yaml

ENV_PREFIX = "WGGUARD_"

DEFAULT_DIR = "/etc/wireguard"
DEFAULT_TIMEOUT = 30.0


@dataclass()
class ManagerConfig:
    dir: str = DEFAULT_DIR
    reserved_tunnel: str = DEFAULT_RESERVED_ID
    key_backend: str = "cryptography"
    timeout: float = DEFAULT_TIMEOUT
    log_level: str = "INFO"

    # File IO
    @classmethod
    def read_file(cls, path: str) -> "ManagerConfig":
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
        return parse_manager_config(load_yaml(text))

    def write_file(self, path: str, overwrite: bool = False) -> None:
        if os.path.exists(path) and not overwrite:
            raise FileExistsError(f"Refusing to overwrite existing file: {path}")
        parent = os.path.dirname(os.path.abspath(path))
        if parent and not os.path.exists(parent):
            os.makedirs(parent, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(dump_yaml(to_yaml_dict(self)))

    # Validation
    def validate(self) -> List[str]:
        errs: List[str] = []
        if not self.dir:
            errs.append("dir must be non-empty")
        if not valid_tunnel_id(self.reserved_tunnel):
            errs.append(f"reserved_tunnel invalid: {self.reserved_tunnel}")
        if self.key_backend not in KEY_BACKENDS:
            errs.append(
                f"key_backend must be one of {', '.join(sorted(KEY_BACKENDS))}: {self.key_backend}"
            )
        if self.timeout < 0:
            errs.append(f"timeout must be >= 0: {self.timeout}")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            errs.append(f"log_level unknown: {self.log_level}")
        return errs

    def validate_or_raise(self) -> None:
        errs = self.validate()
        if errs:
            raise ValueError("Config validation failed:\n- " + "\n- ".join(errs))

    # Fill from env/args
    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "ManagerConfig":
        r = EnvReader(env)
        return cls(
            dir=r.get("DIR", DEFAULT_DIR) or DEFAULT_DIR,
            reserved_tunnel=r.get("RESERVED_TUNNEL", DEFAULT_RESERVED_ID) or DEFAULT_RESERVED_ID,
            key_backend=r.get("KEY_BACKEND", "cryptography") or "cryptography",
            timeout=r.get_float("TIMEOUT", DEFAULT_TIMEOUT),
            log_level=r.get("LOG_LEVEL", "INFO") or "INFO",
        )

    def apply_args_overrides(self, args: object) -> None:
        if getattr(args, "dir", None) is not None:
            self.dir = str(getattr(args, "dir"))
        if getattr(args, "key_backend", None) is not None:
            self.key_backend = str(getattr(args, "key_backend"))
        if getattr(args, "timeout", None) is not None:
            self.timeout = float(getattr(args, "timeout"))
        if getattr(args, "log_level", None) is not None:
            self.log_level = str(getattr(args, "log_level"))
        elif getattr(args, "debug", False):
            self.log_level = "DEBUG"


class EnvReader:
    def __init__(self, env: Mapping[str, str], prefix: str = ENV_PREFIX) -> None:
        self._env = env
        self._prefix = prefix

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._env.get(self._prefix + key, default)

    def get_float(self, key: str, default: float) -> float:
        val = self._env.get(self._prefix + key)
        if val is None:
            return default
        try:
            return float(val)
        except ValueError:
            return default


def to_yaml_dict(cfg: ManagerConfig) -> Dict[str, Any]:
    return {
        "dir": cfg.dir,
        "reserved-tunnel": cfg.reserved_tunnel,
        "key-backend": cfg.key_backend,
        "timeout": float(cfg.timeout),
        "log-level": cfg.log_level,
    }


def parse_manager_config(data: Dict[str, Any]) -> ManagerConfig:
    return ManagerConfig(
        dir=str(data.get("dir", DEFAULT_DIR)),
        reserved_tunnel=str(data.get("reserved-tunnel", DEFAULT_RESERVED_ID)),
        key_backend=str(data.get("key-backend", "cryptography")),
        timeout=float(data.get("timeout", DEFAULT_TIMEOUT)),
        log_level=str(data.get("log-level", "INFO")),
    )
