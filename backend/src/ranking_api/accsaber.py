"""
AccSaber client.

AccSaber ranks accuracy on a curated map pool, split into categories
(true, standard, tech, overall).
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from config import Config
from ranking_api.client import Priority, RankingAPIClient
from ranking_api.difficulty import normalize_difficulty
from utils.dates import to_datetime

logger = logging.getLogger(__name__)


def normalize_accsaber_score(score: Dict[str, Any]) -> Dict[str, Any]:
    """Convert one AccSaber player score to a score row."""
    accuracy = score.get("accuracy")
    return {
        "leaderboard": {
            "leaderboardId": score.get("leaderboardId"),
            "song": {
                "hash": score.get("songHash"),
                "name": score.get("songName"),
                "authorName": score.get("songAuthorName"),
                "levelAuthorName": score.get("levelAuthorName"),
            },
            "diffInfo": {
                "diff": normalize_difficulty(score.get("difficulty")),
                "type": "Standard",
            },
            "category": score.get("categoryName") or score.get("categoryDisplayName"),
            "complexity": score.get("complexity"),
        },
        "score": {
            "scoreId": score.get("scoreId"),
            "score": score.get("score"),
            "acc": accuracy * 100 if isinstance(accuracy, (int, float)) else None,
            "ap": score.get("ap"),
            "weightedAp": score.get("weightedAp"),
            "rank": score.get("rank"),
            "timeSet": to_datetime(score.get("timeSet")),
        },
    }


class AccSaberClient(RankingAPIClient):
    """Client for the AccSaber API."""

    service_name = "accsaber"

    def __init__(self, config: Config, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(config, config.accsaber_api_url, http_client)

    async def categories(self, priority: Priority = Priority.FG_LOW) -> List[Dict[str, Any]]:
        return await self.fetch_json("/categories", priority) or []

    async def ranking(
        self,
        category: str = "overall",
        page: int = 1,
        priority: Priority = Priority.FG_LOW
    ) -> List[Dict[str, Any]]:
        """Category standings. AccSaber returns the whole table; ``page`` is passed through."""
        return await self.fetch_json(
            f"/categories/{category}/standings",
            priority,
            params={"page": page},
        ) or []

    async def scores(
        self,
        player_id: str,
        page: int = 1,
        priority: Priority = Priority.FG_LOW
    ) -> Optional[List[Dict[str, Any]]]:
        """Raw scores for a player, or None if AccSaber does not know them."""
        return await self.fetch_json(
            f"/players/{player_id}/scores",
            priority,
            allow_not_found=True,
            params={"page": page},
        )

    async def leaderboard(
        self,
        leaderboard_id: str,
        page: int = 1,
        priority: Priority = Priority.FG_LOW
    ) -> List[Dict[str, Any]]:
        return await self.fetch_json(
            f"/map-leaderboards/{leaderboard_id}",
            priority,
            params={"page": page},
        ) or []

    async def get_player_scores(
        self,
        player_id: str,
        category: str = "overall",
        priority: Priority = Priority.FG_LOW
    ) -> Optional[Dict[str, Any]]:
        """
        Scores for a player normalised to score rows, optionally narrowed to one category.

        Returns:
            ``{"scores": [...rows], "total": int}``, or None for an unknown player
        """
        data = await self.scores(player_id, priority=priority)
        if data is None:
            return None

        rows = [normalize_accsaber_score(s) for s in data]
        if category and category != "overall":
            wanted = category.lower()
            # Display names read 'True Acc', 'Tech Acc', ...
            rows = [r for r in rows if wanted in (r["leaderboard"].get("category") or "").lower()]

        logger.debug("Fetched AccSaber scores", extra={
            "player_id": player_id,
            "category": category,
            "count": len(rows),
        })

        return {"scores": rows, "total": len(rows)}
