import logging
import os
import shutil
import tempfile
from typing import Any, Dict, List

import yaml  # type: ignore

from .errors import CorruptStateError, NotFoundError, StorageError, TunnelExistsError, ValidationError
from .models import Tunnel, parse_tunnel, tunnel_to_dict, valid_tunnel_id

log = logging.getLogger(__name__)

TUNNEL_DOC = "tunnel.yml"
DEFAULT_RESERVED_ID = "guard0"


def dump_yaml(data: Dict[str, Any]) -> str:
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True)


def load_yaml(text: str) -> Dict[str, Any]:
    obj = yaml.safe_load(text)
    if not isinstance(obj, dict):
        raise ValueError("Invalid YAML root: expected mapping")
    return obj


def _atomic_write(path: str, text: str, mode: int = 0o600) -> None:
    parent = os.path.dirname(path)
    fd, tmp = tempfile.mkstemp(dir=parent, prefix=f".{os.path.basename(path)}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp, mode)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


class StateStore:
    """Filesystem layout for managed tunnels.

    ``<root>/<id>/tunnel.yml`` holds the full tunnel, secrets included;
    ``<root>/<id>.conf`` holds its rendered configuration. The reserved id is
    the manager's own interface and is never listed.
    """

    def __init__(self, root: str, reserved_id: str = DEFAULT_RESERVED_ID) -> None:
        self.root = os.path.abspath(root)
        self.reserved_id = reserved_id

    def init(self) -> None:
        try:
            os.makedirs(self.root, mode=0o700, exist_ok=True)
        except OSError as e:
            raise StorageError(f"create state dir {self.root}: {e}") from e

    # Paths

    def tunnel_dir(self, tunnel_id: str) -> str:
        if not valid_tunnel_id(tunnel_id):
            raise ValidationError(f"invalid tunnel id: {tunnel_id!r}")
        return os.path.join(self.root, tunnel_id)

    def doc_path(self, tunnel_id: str) -> str:
        return os.path.join(self.tunnel_dir(tunnel_id), TUNNEL_DOC)

    def conf_path(self, tunnel_id: str) -> str:
        self.tunnel_dir(tunnel_id)
        return os.path.join(self.root, f"{tunnel_id}.conf")

    def exists(self, tunnel_id: str) -> bool:
        return os.path.isdir(self.tunnel_dir(tunnel_id))

    def conf_exists(self, tunnel_id: str) -> bool:
        return os.path.exists(self.conf_path(tunnel_id))

    # Directory lifecycle

    def create_dir(self, tunnel_id: str) -> None:
        path = self.tunnel_dir(tunnel_id)
        try:
            os.mkdir(path, 0o700)
        except FileExistsError:
            raise TunnelExistsError(tunnel_id) from None
        except OSError as e:
            raise StorageError(f"create tunnel directory {path}: {e}") from e

    def remove_dir(self, tunnel_id: str) -> None:
        path = self.tunnel_dir(tunnel_id)
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"remove data path {path}: {e}") from e

    # Tunnel document

    def save(self, t: Tunnel) -> None:
        path = self.doc_path(t.id)
        try:
            _atomic_write(path, dump_yaml(tunnel_to_dict(t)))
        except OSError as e:
            raise StorageError(f"write {path}: {e}") from e

    def load(self, tunnel_id: str) -> Tunnel:
        path = self.doc_path(tunnel_id)
        try:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
        except FileNotFoundError:
            raise NotFoundError(f"tunnel {tunnel_id} not found") from None
        except OSError as e:
            raise StorageError(f"read {path}: {e}") from e
        try:
            t = parse_tunnel(load_yaml(text))
        except (yaml.YAMLError, ValueError) as e:
            raise CorruptStateError(f"parse {path}: {e}") from e
        if t.id != tunnel_id:
            raise CorruptStateError(f"parse {path}: document id {t.id!r} does not match directory")
        errs = t.validate()
        if errs:
            raise CorruptStateError(f"parse {path}: " + "; ".join(errs))
        return t

    def list(self) -> List[Tunnel]:
        try:
            entries = sorted(
                e.name
                for e in os.scandir(self.root)
                if e.is_dir() and e.name != self.reserved_id and valid_tunnel_id(e.name)
            )
        except OSError as e:
            raise StorageError(f"read config dir {self.root}: {e}") from e
        tunnels = []
        for name in entries:
            try:
                tunnels.append(self.load(name))
            except NotFoundError:
                # directory without a document: a create or delete is in flight
                log.debug("skipping tunnel %s: no document yet", name)
        return tunnels

    # Rendered configuration

    def write_conf(self, tunnel_id: str, text: str) -> None:
        path = self.conf_path(tunnel_id)
        try:
            _atomic_write(path, text)
        except OSError as e:
            raise StorageError(f"create tunnel conf {path}: {e}") from e

    def remove_conf(self, tunnel_id: str) -> None:
        path = self.conf_path(tunnel_id)
        try:
            os.remove(path)
        except OSError as e:
            raise StorageError(f"remove configuration {path}: {e}") from e
