"""
BeatSavior client.

BeatSavior records every play of a player running the in-game mod; the
processed form is what gets stored and matched against ranked scores.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from config import Config
from ranking_api.client import Priority, RankingAPIClient
from ranking_api.difficulty import normalize_difficulty
from utils.dates import to_datetime

logger = logging.getLogger(__name__)


def process_beat_savior_record(raw: Dict[str, Any], player_id: str) -> Optional[Dict[str, Any]]:
    """
    Flatten one raw BeatSavior play into a stored record.

    Returns None for entries without an id; everything else is kept even if
    incomplete, the matcher decides what is usable.
    """
    record_id = raw.get("_id") or raw.get("id")
    if not record_id:
        return None

    trackers = raw.get("trackers") or {}
    score_tracker = trackers.get("scoreTracker") or {}
    win_tracker = trackers.get("winTracker") or {}
    hit_tracker = trackers.get("hitTracker") or {}
    acc_tracker = trackers.get("accuracyTracker") or {}

    song_id = raw.get("songID") or ""
    average_acc = acc_tracker.get("averageAcc")

    return {
        "beatSaviorId": str(record_id),
        "playerId": str(raw.get("playerID") or player_id),
        "songId": song_id,
        "hash": song_id.lower() if song_id else None,
        "diff": normalize_difficulty(raw.get("songDifficulty")),
        "name": raw.get("songName"),
        "artist": raw.get("songArtist"),
        "mapper": raw.get("songMapper"),
        "gameMode": raw.get("gameMode"),
        "score": score_tracker.get("rawScore"),
        "timeSet": to_datetime(raw.get("timeSet")),
        "stats": {
            "won": bool(win_tracker.get("won")),
            "rank": win_tracker.get("rank"),
            "pauses": win_tracker.get("nbOfPause"),
            "accuracy": average_acc * 100 if isinstance(average_acc, (int, float)) else None,
            "accLeft": acc_tracker.get("accLeft"),
            "accRight": acc_tracker.get("accRight"),
            "maxCombo": hit_tracker.get("maxCombo"),
            "miss": hit_tracker.get("miss"),
            "bombHit": hit_tracker.get("bombHit"),
            "wallHit": hit_tracker.get("nbOfWallHit"),
        },
        "trackers": trackers,
    }


class BeatSaviorClient(RankingAPIClient):
    """Client for the BeatSavior live scores API."""

    service_name = "beatsavior"

    def __init__(self, config: Config, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(config, config.beat_savior_api_url, http_client)

    async def get_player(self, player_id: str, priority: Priority = Priority.BG_NORMAL) -> Optional[List[Dict[str, Any]]]:
        """Raw plays for a player, or None if BeatSavior does not know them."""
        return await self.fetch_json(
            f"/livescores/player/{player_id}",
            priority,
            allow_not_found=True,
        )

    async def get_processed(
        self,
        player_id: str,
        priority: Priority = Priority.BG_NORMAL
    ) -> Optional[List[Dict[str, Any]]]:
        """
        Fetch and process a player's plays.

        Args:
            player_id: ScoreSaber player ID (BeatSavior keys players by the same ID)
            priority: Request priority

        Returns:
            List of processed records, or None when the player has no data
        """
        data = await self.get_player(player_id, priority)
        if not data or not isinstance(data, list):
            return None

        records = [r for r in (process_beat_savior_record(raw, player_id) for raw in data) if r]

        logger.debug("Fetched BeatSavior data", extra={
            "player_id": player_id,
            "count": len(records),
        })

        return records or None
