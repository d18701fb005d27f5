"""Cooperative cancellation handle bound to a single query execution."""

from __future__ import annotations

import asyncio


class CancellationToken:
    """One-shot signal that tells the query session to stop waiting.

    Firing the token never aborts work on the database server; it only lets the
    awaiting side resolve early.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """Signal cancellation; returns ``False`` if it was already signalled."""

        if self._event.is_set():
            return False
        self._event.set()
        return True

    async def wait(self) -> None:
        await self._event.wait()


__all__ = ["CancellationToken"]
