"""
Scores provider: turns ``{playerId, service, serviceParams}`` into score rows.

``serviceParams`` per service:
- scoresaber: ``{"type": "recent" | "top", "page": int}``
- accsaber: ``{"type": category, "page": int}``
"""

import logging
from typing import Any, Dict, Optional

from ranking_api.accsaber import AccSaberClient
from ranking_api.client import Priority
from ranking_api.scoresaber import ScoreSaberClient

logger = logging.getLogger(__name__)


class UnknownServiceError(ValueError):
    """Raised for a service the provider cannot fetch from."""
    pass


class ApiScoresProvider:
    """Fetches one page of a player's scores from the requested ranking service."""

    def __init__(self, scoresaber_client: ScoreSaberClient, accsaber_client: AccSaberClient):
        self.scoresaber_client = scoresaber_client
        self.accsaber_client = accsaber_client

    async def get_data(
        self,
        player_id: str,
        service: str = "scoresaber",
        service_params: Optional[Dict[str, Any]] = None,
        priority: Priority = Priority.FG_LOW,
    ) -> Optional[Dict[str, Any]]:
        """
        Returns:
            ``{"scores": [...], "total": int}``, or None when the service does not know the player
        """
        params = service_params or {}

        if service == "scoresaber":
            return await self.scoresaber_client.get_player_scores(
                player_id,
                sort=params.get("type", "recent"),
                page=int(params.get("page", 1)),
                priority=priority,
            )

        if service == "accsaber":
            return await self.accsaber_client.get_player_scores(
                player_id,
                category=params.get("type", "overall"),
                priority=priority,
            )

        raise UnknownServiceError(f"Unknown scores service: {service}")

    async def close(self):
        await self.scoresaber_client.close()
        await self.accsaber_client.close()
