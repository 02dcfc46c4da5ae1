"""Trailing-edge debounce on top of the running asyncio loop."""

import asyncio
from typing import Any, Callable, Optional


class TrailingDebouncer:
    """
    Calls ``callback`` once, ``delay`` seconds after the last call.

    Every call resets the timer and replaces the arguments, so a burst of
    calls collapses into one invocation with the latest arguments.
    """

    def __init__(self, callback: Callable[..., Any], delay: float):
        self.callback = callback
        self.delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None

    def __call__(self, *args):
        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire, args)

    def _fire(self, args):
        self._handle = None
        self.callback(*args)

    def cancel(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def pending(self) -> bool:
        return self._handle is not None
