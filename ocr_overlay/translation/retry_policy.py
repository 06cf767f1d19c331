"""
Timeout escalation shared by every network translation call.

Ladder: short first attempt (longer for slow models) -> one retry with a
longer timeout. Only faults the predicate marks retryable are retried;
cancellation always propagates.
"""

import asyncio
import os
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from ..cancellation import CancellationToken
from ..errors import OperationAborted, TranslationTimeout

T = TypeVar("T")

DEFAULT_TIMEOUT_MS = 8000
DEFAULT_SLOW_TIMEOUT_MS = 20000
DEFAULT_RETRY_TIMEOUT_MS = 30000

# How often an in-flight call checks the cancel token.
_CANCEL_POLL_S = 0.05


def _read_env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def is_retryable_timeout(exc: BaseException) -> bool:
    return isinstance(exc, TranslationTimeout)


async def run_with_deadline(
    factory: Callable[[float], Awaitable[T]],
    timeout: float,
    cancel_token: Optional[CancellationToken] = None,
) -> T:
    """
    Await ``factory(timeout)`` with a hard deadline.

    A missed deadline becomes ``TranslationTimeout``; a cancelled token
    cancels the in-flight call and raises ``OperationAborted``.
    """
    task = asyncio.ensure_future(factory(timeout))
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    try:
        while True:
            if cancel_token is not None and cancel_token.cancelled:
                task.cancel()
                cancel_token.raise_if_cancelled()
            remaining = deadline - loop.time()
            if remaining <= 0:
                task.cancel()
                raise TranslationTimeout(f"no response within {timeout:.1f}s")
            wait_for = min(remaining, _CANCEL_POLL_S) if cancel_token is not None else remaining
            done, _ = await asyncio.wait({task}, timeout=wait_for)
            if done:
                return task.result()
    finally:
        if not task.done():
            task.cancel()


class TimeoutLadder:
    """Ordered timeouts (seconds) plus a retryable-fault predicate."""

    def __init__(
        self,
        timeouts: Sequence[float],
        retryable: Callable[[BaseException], bool] = is_retryable_timeout,
    ):
        if not timeouts:
            raise ValueError("timeout ladder needs at least one step")
        self.timeouts = list(timeouts)
        self.retryable = retryable
        self.attempts = 0

    @classmethod
    def from_env(cls, slow_model: bool = False) -> "TimeoutLadder":
        first_ms = (
            _read_env_int("TRANSLATE_SLOW_TIMEOUT_MS", DEFAULT_SLOW_TIMEOUT_MS)
            if slow_model
            else _read_env_int("TRANSLATE_TIMEOUT_MS", DEFAULT_TIMEOUT_MS)
        )
        retry_ms = _read_env_int("TRANSLATE_RETRY_TIMEOUT_MS", DEFAULT_RETRY_TIMEOUT_MS)
        return cls([first_ms / 1000.0, max(first_ms, retry_ms) / 1000.0])

    async def run(
        self,
        factory: Callable[[float], Awaitable[T]],
        cancel_token: Optional[CancellationToken] = None,
    ) -> T:
        last_error: Optional[BaseException] = None
        self.attempts = 0
        for timeout in self.timeouts:
            self.attempts += 1
            try:
                return await run_with_deadline(factory, timeout, cancel_token)
            except OperationAborted:
                raise
            except Exception as exc:
                if not self.retryable(exc):
                    raise
                last_error = exc
        raise last_error
