"""
ScoreSaber client.

Primary source of score rows. Responses are normalised to the row shape the
enrichment pipeline works on (``leaderboard.song.hash``,
``leaderboard.diffInfo.diff``, ``score.score``, ``score.timeSet``).
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from config import Config
from ranking_api.client import Priority, RankingAPIClient
from ranking_api.difficulty import normalize_difficulty
from utils.dates import to_datetime

logger = logging.getLogger(__name__)

SCORES_PER_PAGE = 8
_SORTS = {"recent", "top"}


def normalize_scoresaber_score(player_score: Dict[str, Any]) -> Dict[str, Any]:
    """Convert one ScoreSaber ``playerScores`` entry to a score row."""
    score = player_score.get("score") or {}
    leaderboard = player_score.get("leaderboard") or {}
    difficulty = leaderboard.get("difficulty") or {}

    return {
        "leaderboard": {
            "leaderboardId": leaderboard.get("id"),
            "song": {
                "hash": leaderboard.get("songHash"),
                "name": leaderboard.get("songName"),
                "subName": leaderboard.get("songSubName"),
                "authorName": leaderboard.get("songAuthorName"),
                "levelAuthorName": leaderboard.get("levelAuthorName"),
            },
            "diffInfo": {
                "diff": normalize_difficulty(difficulty.get("difficulty")),
                "type": difficulty.get("gameMode"),
            },
            "maxScore": leaderboard.get("maxScore") or None,
            "ranked": bool(leaderboard.get("ranked")),
            "stars": leaderboard.get("stars"),
        },
        "score": {
            "scoreId": score.get("id"),
            "score": score.get("baseScore"),
            "modifiedScore": score.get("modifiedScore"),
            "pp": score.get("pp"),
            "weight": score.get("weight"),
            "rank": score.get("rank"),
            "mods": score.get("modifiers") or None,
            "missedNotes": score.get("missedNotes"),
            "badCuts": score.get("badCuts"),
            "fullCombo": score.get("fullCombo"),
            "timeSet": to_datetime(score.get("timeSet")),
        },
    }


class ScoreSaberClient(RankingAPIClient):
    """Client for the ScoreSaber public API."""

    service_name = "scoresaber"

    def __init__(self, config: Config, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(config, config.scoresaber_api_url, http_client)

    async def get_player_scores(
        self,
        player_id: str,
        sort: str = "recent",
        page: int = 1,
        priority: Priority = Priority.FG_LOW
    ) -> Optional[Dict[str, Any]]:
        """
        Get one page of a player's scores.

        Returns:
            ``{"scores": [...rows], "total": int}``, or None for an unknown player
        """
        if sort not in _SORTS:
            raise ValueError(f"Unsupported ScoreSaber sort: {sort}")

        data = await self.fetch_json(
            f"/player/{player_id}/scores",
            priority,
            allow_not_found=True,
            params={"sort": sort, "page": page, "limit": SCORES_PER_PAGE},
        )
        if not data:
            return None

        rows: List[Dict[str, Any]] = [
            normalize_scoresaber_score(s) for s in data.get("playerScores") or []
        ]
        total = (data.get("metadata") or {}).get("total")

        logger.debug("Fetched ScoreSaber scores", extra={
            "player_id": player_id,
            "sort": sort,
            "page": page,
            "count": len(rows),
        })

        return {"scores": rows, "total": total if total is not None else len(rows)}
