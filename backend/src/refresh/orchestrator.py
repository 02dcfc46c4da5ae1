"""
Refresh Orchestrator - keeps cached BeatSavior data fresh in the background.

Runs ``refresh_all`` on a fixed cadence; the per-player policy decides who
actually gets fetched on each pass.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from config import Config
from database.supabase_client import SupabaseClient
from ranking_api.client import Priority
from refresh.beat_savior import BeatSaviorDataRefresher, create_beat_savior_refresher
from services.context import BEAT_SAVIOR, ServiceContext

logger = logging.getLogger(__name__)


class RefreshOrchestrator:
    """Orchestrates background refresh passes."""

    def __init__(self, config: Config, context: Optional[ServiceContext] = None):
        self.config = config
        self.context = context
        self.beat_savior: Optional[BeatSaviorDataRefresher] = None
        self.running = False
        self.last_pass_time: Optional[datetime] = None
        self._stop_event = asyncio.Event()

    async def initialize(self):
        """Initialize orchestrator and clients."""
        logger.info("Orchestrator starting")

        if self.context is None:
            self.context = ServiceContext(self.config, SupabaseClient(self.config))
        self.beat_savior = self.context.acquire(BEAT_SAVIOR, create_beat_savior_refresher)

        logger.info("Orchestrator ready")

    def stop(self):
        """Ask the refresh loop to exit after the current pass."""
        self.running = False
        self._stop_event.set()

    async def shutdown(self):
        """Shutdown orchestrator gracefully."""
        logger.info("Orchestrator shutting down")
        self.stop()

        if self.beat_savior is not None:
            self.beat_savior = None
            await self.context.release(BEAT_SAVIOR)

        logger.info("Orchestrator stopped")

    async def run_once(
        self,
        force: bool = False,
        priority: Priority = Priority.BG_NORMAL,
        throw_errors: bool = False
    ) -> Optional[List[Dict[str, Any]]]:
        """One refresh pass over every cached player."""
        started = datetime.now(timezone.utc)
        results = await self.beat_savior.refresh_all(force, priority, throw_errors)
        self.last_pass_time = datetime.now(timezone.utc)

        logger.info("Refresh pass complete", extra={
            "players": len(results) if results else 0,
            "duration_ms": int((self.last_pass_time - started).total_seconds() * 1000),
        })
        return results

    async def run(self):
        """Refresh loop until shutdown."""
        logger.info("Refresh loop started", extra={"interval": self.config.refresh_all_interval})
        self.running = True
        try:
            while self.running:
                try:
                    await self.run_once()
                except Exception as e:
                    logger.error("Refresh pass failed", extra={"error": str(e)}, exc_info=True)

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.config.refresh_all_interval)
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            logger.info("Refresh loop cancelled")
        finally:
            self.running = False
