"""Cooperative cancellation signal shared by the analysis stages."""

import threading
from typing import Optional

from .errors import OperationAborted


class CancellationToken:
    """
    Thread-safe cancel flag.

    Stages call ``raise_if_cancelled()`` at their checkpoints (start of
    detection, before each recognition call, before translation and on every
    autoregressive decode step). Work running in executor threads sees the
    flag immediately.
    """

    def __init__(self):
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationAborted(self._reason or "operation aborted")


def check_cancelled(token: Optional[CancellationToken]) -> None:
    """Checkpoint helper that tolerates a missing token."""
    if token is not None:
        token.raise_if_cancelled()
