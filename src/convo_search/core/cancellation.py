import threading
import time


class SearchCancelledError(Exception):
    """Raised when a caller cancels a search or its deadline passes."""


class CancellationToken:
    """Cooperative cancellation signal with an optional deadline.

    Workers poll ``raise_if_cancelled()`` between units of work; nothing is
    interrupted preemptively.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancellationToken":
        return cls(timeout=seconds)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            reason = "cancelled" if self._event.is_set() else "deadline exceeded"
            raise SearchCancelledError(f"Search {reason}")


def check_cancelled(token: CancellationToken | None) -> None:
    """No-op for a missing token."""
    if token is not None:
        token.raise_if_cancelled()
