#!/usr/bin/env python3
"""
Score Refresh Service - Main Entry Point

Keeps locally cached BeatSavior data for every tracked player fresh,
respecting the per-player staleness tiers.
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path

# Load .env from backend directory before Config() is used
from dotenv import load_dotenv
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from config import Config
from refresh.orchestrator import RefreshOrchestrator
from refresh.policy import (
    CACHED_PLAYER_REFRESH_INTERVAL,
    MAIN_PLAYER_REFRESH_INTERVAL,
    OTHER_PLAYER_REFRESH_INTERVAL,
)
from utils.logger import setup_logging

logger = logging.getLogger(__name__)


class ScoreRefreshService:
    """Main service class for background score data refresh."""

    def __init__(self):
        self.config = Config()
        self.orchestrator = None
        self.running = False

    async def start(self):
        """Start the refresh service."""
        logger.info("Starting Score Refresh Service", extra={
            "version": "1.0.0",
            "environment": self.config.environment,
            "main_player_id": self.config.main_player_id,
            "refresh_all_interval": self.config.refresh_all_interval,
            "windows": {
                "main_player": str(MAIN_PLAYER_REFRESH_INTERVAL),
                "cached_player": str(CACHED_PLAYER_REFRESH_INTERVAL),
                "other_player": str(OTHER_PLAYER_REFRESH_INTERVAL),
            },
            "honor_recent_play": self.config.honor_recent_play,
            "max_requests_per_minute": self.config.max_requests_per_minute,
        })
        if not self.config.main_player_id:
            logger.warning("MAIN_PLAYER_ID not set, every player uses the cached or other window")

        try:
            self.orchestrator = RefreshOrchestrator(self.config)
            await self.orchestrator.initialize()

            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, self._handle_shutdown, sig)

            self.running = True

            await self.orchestrator.run()

        except Exception as e:
            logger.error("Fatal error in refresh service", extra={
                "error": str(e),
                "error_type": type(e).__name__
            }, exc_info=True)
            raise
        finally:
            if self.orchestrator and self.orchestrator.beat_savior is not None:
                await self.orchestrator.shutdown()

    def _handle_shutdown(self, signum):
        """Handle shutdown signals gracefully."""
        logger.info("Received shutdown signal", extra={"signal": signum})
        self.running = False
        if self.orchestrator:
            self.orchestrator.stop()


async def main():
    """Main entry point."""
    setup_logging()

    service = ScoreRefreshService()
    try:
        await service.start()
    except KeyboardInterrupt:
        logger.info("Service interrupted by user")
    except Exception as e:
        logger.error("Service crashed", extra={"error": str(e)}, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
