#!/usr/bin/env python3
"""
Manually refresh cached BeatSavior data.

Refreshes one player, or every cached player. Without --force the usual
staleness tiers apply, so fresh players are skipped.

Usage (from backend directory):
    python3 scripts/refresh_beat_savior.py
    python3 scripts/refresh_beat_savior.py --player 76561198000000000 --force
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent.parent / ".env")

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from config import Config
from ranking_api.client import Priority
from refresh.orchestrator import RefreshOrchestrator
from utils.logger import setup_logging


async def refresh_beat_savior(player_id: Optional[str], force: bool) -> int:
    setup_logging()
    orchestrator = RefreshOrchestrator(Config())

    try:
        await orchestrator.initialize()

        if player_id:
            records = await orchestrator.beat_savior.refresh(
                player_id, force=force, priority=Priority.FG_HIGH, throw_errors=True
            )
            if records:
                print(f"Player {player_id}: stored {len(records)} BeatSavior plays")
            else:
                print(f"Player {player_id}: nothing refreshed (still fresh or no data)")
            return 0

        results = await orchestrator.run_once(force=force, priority=Priority.BG_HIGH, throw_errors=True)
        if not results:
            print("No cached players.")
            return 0

        for entry in results:
            plays = entry["beatSavior"]
            status = f"{len(plays)} plays" if plays else "skipped"
            print(f"  {entry['playerId']}: {status}")
        print(f"Refreshed {sum(1 for r in results if r['beatSavior'])}/{len(results)} players")
        return 0

    except Exception as e:
        print(f"Error during refresh: {e}")
        return 1

    finally:
        await orchestrator.shutdown()


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Refresh cached BeatSavior data for one player or all cached players."
    )
    parser.add_argument("--player", metavar="ID", help="Player ID to refresh (default: all cached players)")
    parser.add_argument("--force", action="store_true", help="Ignore the staleness window")
    args = parser.parse_args()
    sys.exit(asyncio.run(refresh_beat_savior(args.player, args.force)))


if __name__ == "__main__":
    main()
