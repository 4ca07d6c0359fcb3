import threading
import time
from typing import Optional

from .errors import CancelledError


class OperationContext:
    """Cancellation signal and optional deadline for one lifecycle operation.

    Every step of an operation calls ``check()`` before doing work; external
    commands poll ``cancelled`` and ``remaining()`` while they run.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._deadline: Optional[float] = None
        if timeout is not None and timeout > 0:
            self._deadline = time.monotonic() + timeout

    @classmethod
    def background(cls) -> "OperationContext":
        return cls()

    def cancel(self) -> None:
        self._event.set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.expired

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; returns True if cancelled meanwhile."""
        end = time.monotonic() + seconds
        while not self.cancelled:
            left = end - time.monotonic()
            if left <= 0:
                break
            rem = self.remaining()
            self._event.wait(left if rem is None else min(left, rem))
        return self.cancelled

    def check(self, what: str = "operation") -> None:
        if self._event.is_set():
            raise CancelledError(f"{what} cancelled")
        if self.expired:
            raise CancelledError(f"{what} deadline exceeded")
