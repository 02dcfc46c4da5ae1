"""
Player classification service.

Answers which tier a player belongs to: the main player (configured), a
cached player (present in the local players table) or anybody else.
"""

import logging
from typing import Any, Dict, List, Optional

from database.repository import Repository, players_repository

logger = logging.getLogger(__name__)


class PlayerService:
    """Read access to locally cached players."""

    def __init__(self, repository: Repository, main_player_id: Optional[str] = None):
        self.repository = repository
        self.main_player_id = str(main_player_id) if main_player_id else None

    def is_main_player(self, player_id: Any) -> bool:
        return self.main_player_id is not None and str(player_id) == self.main_player_id

    async def get(self, player_id: Any) -> Optional[Dict[str, Any]]:
        return await self.repository.get(str(player_id))

    async def get_all(self) -> List[Dict[str, Any]]:
        players = await self.repository.get_all()
        logger.debug("Loaded cached players", extra={"count": len(players)})
        return players


def create_player_service(context) -> PlayerService:
    """ServiceContext factory."""
    return PlayerService(
        players_repository(context.db_client),
        context.config.main_player_id if context.config else None,
    )
