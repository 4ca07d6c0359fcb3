from typing import Optional


class GuardError(Exception):
    """Base error for tunnel lifecycle operations.

    ``step`` names the lifecycle step that failed; when set, ``str(err)``
    reads ``"<step>: <message>"``. ``cleanup_error`` carries a rollback
    failure that happened while handling this error.
    """

    def __init__(self, message: str, *, step: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.step = step
        self.cleanup_error: Optional[BaseException] = None

    def annotate(self, step: str) -> "GuardError":
        if self.step is None:
            self.step = step
        return self

    def _body(self) -> str:
        return self.message

    def __str__(self) -> str:
        text = f"{self.step}: {self._body()}" if self.step else self._body()
        if self.cleanup_error is not None:
            text += f" (cleanup failed: {self.cleanup_error})"
        return text


class ValidationError(GuardError, ValueError):
    pass


class ConflictError(GuardError):
    pass


class TunnelExistsError(ConflictError):
    def __init__(self, tunnel_id: str) -> None:
        super().__init__(f"tunnel exists: {tunnel_id}")
        self.tunnel_id = tunnel_id


class PeerExistsError(ConflictError):
    def __init__(self, tunnel_id: str, peer_id: str) -> None:
        super().__init__(f"peer {peer_id} already exists in tunnel {tunnel_id}")
        self.tunnel_id = tunnel_id
        self.peer_id = peer_id


class NotFoundError(GuardError, LookupError):
    pass


class CorruptStateError(GuardError):
    pass


class StorageError(GuardError):
    pass


class ExternalCommandError(GuardError):
    """A key-generation or service-control command failed.

    ``output`` holds whatever the command printed (stdout and stderr).
    """

    def __init__(self, message: str, output: str = "", *, step: Optional[str] = None) -> None:
        super().__init__(message, step=step)
        self.output = output

    def _body(self) -> str:
        out = self.output.strip()
        return f"{self.message}: {out}" if out else self.message


class CancelledError(GuardError):
    pass
