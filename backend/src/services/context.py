"""
Reference-counted registry of shared services.

Several independent call sites (the refresh loop, the API, enrichment)
share one instance per service. The instance is created on the first
``acquire`` and closed when the last holder calls ``release``.
"""

import inspect
import logging
from typing import Any, Callable, Dict, Optional

from config import Config

logger = logging.getLogger(__name__)

# Registry names
PLAYERS = "players"
BEAT_SAVIOR = "beat-savior"


class ServiceContext:
    """Application-level owner of shared service instances and their holder counts."""

    def __init__(self, config: Optional[Config] = None, db_client: Any = None):
        self.config = config
        self.db_client = db_client
        self._instances: Dict[str, Any] = {}
        self._counts: Dict[str, int] = {}

    def acquire(self, name: str, factory: Callable[["ServiceContext"], Any]) -> Any:
        """Return the shared instance for ``name``, creating it with ``factory(self)`` on first use."""
        if name not in self._instances:
            self._instances[name] = factory(self)
            self._counts[name] = 0
            logger.debug("Service created", extra={"service": name})
        self._counts[name] += 1
        return self._instances[name]

    async def release(self, name: str) -> None:
        """Drop one hold on ``name``; closes the instance when nobody holds it anymore."""
        if name not in self._counts:
            raise KeyError(f"Service '{name}' is not held")

        self._counts[name] -= 1
        if self._counts[name] > 0:
            return

        instance = self._instances.pop(name)
        del self._counts[name]

        close = getattr(instance, "close", None)
        if close is not None:
            result = close()
            if inspect.isawaitable(result):
                await result
        logger.debug("Service closed", extra={"service": name})

    def holders(self, name: str) -> int:
        return self._counts.get(name, 0)

    def __contains__(self, name: str) -> bool:
        return name in self._instances
