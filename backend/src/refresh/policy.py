"""
Staleness policy for per-player remote data.

Three fixed tiers, shortest window first:
- main player: the installation's own player, kept close to live
- cached player: someone already in the local players table
- other player: looked up once, rarely worth re-fetching
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from utils.dates import DAY, HOUR, MINUTE, SECOND, to_datetime, utcnow

logger = logging.getLogger(__name__)

MAIN_PLAYER_REFRESH_INTERVAL = MINUTE * 15
CACHED_PLAYER_REFRESH_INTERVAL = HOUR * 3
OTHER_PLAYER_REFRESH_INTERVAL = DAY


class RefreshPolicy:
    """Decides whether a player's data is due for a re-fetch."""

    def __init__(
        self,
        is_main_player: Callable[[Any], bool],
        honor_recent_play: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.is_main_player = is_main_player
        self.honor_recent_play = honor_recent_play
        self.clock = clock

    def refresh_interval(self, player_id: Any, player: Optional[Dict[str, Any]]) -> timedelta:
        if self.is_main_player(player_id):
            return MAIN_PLAYER_REFRESH_INTERVAL
        if player:
            return CACHED_PLAYER_REFRESH_INTERVAL
        return OTHER_PLAYER_REFRESH_INTERVAL

    def next_refresh(
        self,
        player_id: Any,
        player: Optional[Dict[str, Any]],
        refresh_record: Optional[Dict[str, Any]],
        now: Optional[datetime] = None,
    ) -> datetime:
        """When the stored data goes stale. A player never refreshed was due a second ago."""
        now = now or self.clock()
        last_refresh = to_datetime((refresh_record or {}).get("lastRefresh"))
        if last_refresh is None:
            return now - SECOND
        return last_refresh + self.refresh_interval(player_id, player)

    def should_refresh(
        self,
        player_id: Any,
        force: bool,
        player: Optional[Dict[str, Any]],
        refresh_record: Optional[Dict[str, Any]],
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Args:
            player_id: Player to check
            force: Skip the staleness check entirely
            player: Cached player row, or None if the player is not cached
            refresh_record: Stored ``{"playerId", "lastRefresh"}`` stamp, or None
            now: Reference time (defaults to the policy clock)

        Returns:
            True if remote data should be fetched
        """
        if force or not refresh_record:
            return True

        now = now or self.clock()
        next_update = self.next_refresh(player_id, player, refresh_record, now)
        if next_update <= now:
            return True

        if self.honor_recent_play and player:
            recent_play = to_datetime(player.get("recentPlay"))
            last_refresh = to_datetime(refresh_record.get("lastRefresh"))
            if recent_play and last_refresh and recent_play > last_refresh:
                logger.debug("Player played after last refresh, refreshing early", extra={
                    "player_id": player_id,
                })
                return True

        return False
