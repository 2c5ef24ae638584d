"""Cooperative cancellation for search and ingest requests."""
import threading
import time
from typing import Optional

from .errors import RequestCancelledError


class CancellationToken:
    """Cancellation flag plus an optional deadline.

    The request boundary owns the token; core services only check it
    between external calls and bound their waits by :meth:`remaining`.
    """

    def __init__(self, timeout: Optional[float] = None):
        """Initialize token.

        Args:
            timeout: Seconds until the deadline expires. None means no deadline.
        """
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def check(self, stage: str) -> None:
        """Raise if cancelled.

        Raises:
            RequestCancelledError: Token was cancelled or deadline passed.
        """
        if self.is_cancelled():
            raise RequestCancelledError(stage=stage)
