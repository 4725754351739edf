"""Cooperative cancellation for a single conversational turn."""

from __future__ import annotations

import asyncio
import itertools
import logging

from ..errors import Aborted

logger = logging.getLogger(__name__)

_token_ids = itertools.count(1)


class CancellationToken:
    """Signal observed at every suspension point of one turn.

    Cancelling never interrupts an in-flight await; callers poll
    :attr:`cancelled` (or call :meth:`raise_if_cancelled`) before and after
    each suspending call. A token is resolved exactly once, either by
    completing or by cancelling, and is never reused.
    """

    def __init__(self) -> None:
        self.token_id = next(_token_ids)
        self._event = asyncio.Event()
        self._resolved = False

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def resolved(self) -> bool:
        return self._resolved or self._event.is_set()

    def cancel(self) -> bool:
        """Signal cancellation. Returns False when already resolved."""
        if self.resolved:
            return False
        self._event.set()
        logger.debug(f"Cancellation token {self.token_id} signalled")
        return True

    def complete(self) -> None:
        """Mark the turn finished; later :meth:`cancel` calls are no-ops."""
        self._resolved = True

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Aborted()

    async def wait(self) -> None:
        await self._event.wait()

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "completed" if self._resolved else "live"
        return f"<CancellationToken {self.token_id} {state}>"


__all__ = ["CancellationToken"]
