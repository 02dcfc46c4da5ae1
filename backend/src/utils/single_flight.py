"""
Single-flight pool.

Concurrent callers asking for the same key share one in-flight operation
instead of each starting their own. Nothing is cached once the operation
settles: the next call after that starts a fresh one.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict

logger = logging.getLogger(__name__)


class SingleFlightPool:
    """Deduplicates concurrent async operations keyed by caller-supplied strings."""

    def __init__(self):
        self._pending: Dict[str, asyncio.Future] = {}

    async def resolve(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        """
        Await the in-flight operation for ``key``, starting it with ``factory`` if none exists.

        The lookup and registration happen before the first suspension point, so
        no lock is needed on a single event loop. Each caller awaits a shielded
        view of the shared task: cancelling one waiter leaves the others alone.
        """
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._pending[key] = task
            # Registered before any waiter's callback, so the key is gone by the time they resume
            task.add_done_callback(lambda t, k=key: self._settle(k, t))
        else:
            logger.debug("Joining in-flight operation", extra={"key": key})

        return await asyncio.shield(task)

    def _settle(self, key: str, task: asyncio.Future):
        if self._pending.get(key) is task:
            del self._pending[key]

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    @property
    def in_flight_count(self) -> int:
        return len(self._pending)
