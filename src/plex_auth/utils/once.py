"""Succeed-once guard.

Runs an async initialization until it succeeds once. Concurrent callers
are serialized; after the first success every later call returns without
running anything. A failure leaves the guard un-done so the next caller
tries again.
"""

from __future__ import annotations

__all__ = ["UntilSuccessful"]

import asyncio
from typing import Awaitable, Callable


class UntilSuccessful:
    """Like a one-shot lock, but only a successful run counts.

    Usage:
        setup = UntilSuccessful()

        async def token():
            await setup.do(load_or_register)
            ...
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._done = False

    @property
    def done(self) -> bool:
        """True once a call to do() has succeeded."""
        return self._done

    async def do(self, fn: Callable[[], Awaitable[None]]) -> None:
        """Run fn unless a previous run succeeded.

        Args:
            fn: Coroutine function to run.

        Raises:
            Whatever fn raises. The guard stays un-done.
        """
        if self._done:
            return

        async with self._lock:
            if self._done:
                return
            await fn()
            self._done = True
