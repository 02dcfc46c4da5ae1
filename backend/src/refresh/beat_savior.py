"""
BeatSavior data refresh module.

Keeps each player's BeatSavior plays cached locally: decides when a player
is due (see refresh.policy), collapses concurrent refreshes of the same
player into one fetch, and stamps the player's refresh time only once every
record is stored.
"""

import asyncio
import logging
from numbers import Number
from typing import Any, Dict, List, Optional

from database.repository import Repository, beat_savior_players_repository, beat_savior_repository
from ranking_api.beatsavior import BeatSaviorClient
from ranking_api.client import Priority
from refresh.policy import RefreshPolicy
from services.context import PLAYERS, ServiceContext
from services.players import PlayerService, create_player_service
from utils.dates import MINUTE, format_date, to_datetime, utcnow
from utils.single_flight import SingleFlightPool

logger = logging.getLogger(__name__)

PLAYER_INDEX = "beat-savior-playerId"

# Clock skew tolerated between ScoreSaber and BeatSavior timestamps of one play
MATCH_TIME_TOLERANCE = MINUTE


def _get(data: Any, path: str) -> Any:
    """Nested dict lookup by dotted path, None when any step is missing."""
    for part in path.split("."):
        if not isinstance(data, dict):
            return None
        data = data.get(part)
    return data


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def is_score_matching(score: Dict[str, Any], record: Dict[str, Any], exact: bool = True) -> bool:
    """
    Does a stored BeatSavior record describe the play behind a score row?

    Hash (case-insensitive) and difficulty must match. With ``exact`` the
    score value must be equal too, and both timestamps within a minute.
    Incomplete input on either side is never a match.
    """
    if not isinstance(score, dict) or not isinstance(record, dict):
        return False

    record_hash = record.get("hash")
    record_score = record.get("score")
    record_time = to_datetime(record.get("timeSet"))
    if not record_hash or not _is_number(record_score) or not record_time or not _get(record, "stats.won"):
        return False

    diff = _get(score, "leaderboard.diffInfo.diff")
    score_value = _get(score, "score.score")
    time_set = to_datetime(_get(score, "score.timeSet"))
    song_hash = _get(score, "leaderboard.song.hash")
    if not diff or score_value is None or not time_set or not song_hash:
        return False

    if str(record_hash).lower() != str(song_hash).lower() or record.get("diff") != diff:
        return False

    if not exact:
        return True

    return record_score == score_value and abs(time_set - record_time) < MATCH_TIME_TOLERANCE


class BeatSaviorDataRefresher:
    """Handles BeatSavior data refresh and lookup operations."""

    def __init__(
        self,
        api_client: BeatSaviorClient,
        repository: Repository,
        players_repository: Repository,
        player_service: PlayerService,
        policy: Optional[RefreshPolicy] = None,
        pool: Optional[SingleFlightPool] = None,
        context: Optional[ServiceContext] = None,
    ):
        self.context = context
        self.api_client = api_client
        self.repository = repository
        self.players_repository = players_repository
        self.player_service = player_service
        self.policy = policy or RefreshPolicy(player_service.is_main_player)
        self.pool = pool or SingleFlightPool()

    async def _update_data(self, player_id: str, data: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Store every record, then stamp the refresh. A failed record write leaves the stamp untouched."""
        logger.debug("Updating BeatSavior data", extra={"player_id": player_id, "count": len(data)})

        await asyncio.gather(*(self.repository.set(record) for record in data))

        await self.players_repository.set({"playerId": player_id, "lastRefresh": utcnow()})

        logger.debug("BeatSavior data updated", extra={"player_id": player_id})

        return data

    async def fetch_player(
        self,
        player_id: str,
        priority: Priority = Priority.BG_NORMAL,
        throw_errors: bool = False
    ) -> Optional[List[Dict[str, Any]]]:
        """
        Fetch a player's plays and persist them.

        Args:
            player_id: Player to fetch
            priority: Request priority
            throw_errors: Propagate fetch/store errors instead of returning None

        Returns:
            Stored records, or None when there was nothing to store or the fetch failed
        """
        try:
            logger.debug("Fetching BeatSavior data", extra={"player_id": player_id, "priority": priority.name})

            data = await self.api_client.get_processed(player_id, priority)
            if not data:
                logger.debug("No BeatSavior data", extra={"player_id": player_id})
                return None

            return await self._update_data(player_id, data)
        except Exception as e:
            if throw_errors:
                raise
            logger.warning("Error fetching BeatSavior data", extra={
                "player_id": player_id,
                "error": str(e),
                "error_type": type(e).__name__,
            })
            return None

    async def refresh(
        self,
        player_id: str,
        force: bool = False,
        priority: Priority = Priority.BG_NORMAL,
        throw_errors: bool = False
    ) -> Optional[List[Dict[str, Any]]]:
        """
        Refresh a player's BeatSavior data if it is stale (or ``force``).

        Concurrent refreshes of the same player share one fetch.

        Returns:
            Freshly stored records, or None if still fresh, empty, or failed
        """
        player_id = str(player_id)
        logger.debug("Refreshing BeatSavior data", extra={"player_id": player_id, "force": force})

        try:
            player = await self.player_service.get(player_id)
            refresh_record = await self.players_repository.get(player_id)

            if not self.policy.should_refresh(player_id, force, player, refresh_record):
                next_update = self.policy.next_refresh(player_id, player, refresh_record)
                logger.debug("BeatSavior data is still fresh, skipping", extra={
                    "player_id": player_id,
                    "next_refresh": format_date(next_update),
                })
                return None

            return await self.pool.resolve(
                f"refresh/{player_id}",
                lambda: self.fetch_player(player_id, priority, throw_errors),
            )
        except Exception as e:
            if throw_errors:
                raise
            logger.warning("BeatSavior refresh failed", extra={
                "player_id": player_id,
                "error": str(e),
                "error_type": type(e).__name__,
            })
            return None

    async def refresh_all(
        self,
        force: bool = False,
        priority: Priority = Priority.BG_NORMAL,
        throw_errors: bool = False
    ) -> Optional[List[Dict[str, Any]]]:
        """
        Refresh every cached player concurrently.

        Returns:
            ``[{"playerId", "beatSavior"}, ...]`` with one entry per player, or None if no players
        """
        all_players = await self.player_service.get_all()
        if not all_players:
            logger.debug("No players cached, skipping BeatSavior refresh")
            return None

        async def refresh_one(player: Dict[str, Any]) -> Dict[str, Any]:
            player_id = str(player["playerId"])
            return {
                "playerId": player_id,
                "beatSavior": await self.refresh(player_id, force, priority, throw_errors),
            }

        results = await asyncio.gather(*(refresh_one(p) for p in all_players))

        logger.info("BeatSavior data for all players refreshed", extra={
            "count": len(results),
            "refreshed": sum(1 for r in results if r["beatSavior"]),
        })

        return list(results)

    async def _get_player_records(self, player_id: str) -> List[Dict[str, Any]]:
        return await self.pool.resolve(
            f"getPlayerBeatSaviorData/{player_id}",
            lambda: self.repository.get_all_from_index(PLAYER_INDEX, player_id),
        )

    async def get(self, player_id: str, score: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """The stored play matching a score row, or None."""
        if score and score.get("beatSavior"):
            return score["beatSavior"]

        records = await self._get_player_records(str(player_id))
        if not records:
            return None

        return next((r for r in records if is_score_matching(score, r, True)), None)

    async def get_all_player_scores(self, player_id: str) -> List[Dict[str, Any]]:
        return await self.repository.get_all_from_index(PLAYER_INDEX, str(player_id))

    async def is_data_for_player_available(self, player_id: str) -> bool:
        return await self.repository.get_from_index(PLAYER_INDEX, str(player_id)) is not None

    async def close(self):
        await self.api_client.close()
        # The player service was acquired from the context on our behalf
        if self.context is not None:
            await self.context.release(PLAYERS)


def create_beat_savior_refresher(context: ServiceContext) -> BeatSaviorDataRefresher:
    """ServiceContext factory: shares the context's player service and database."""
    config = context.config
    player_service = context.acquire(PLAYERS, create_player_service)
    return BeatSaviorDataRefresher(
        BeatSaviorClient(config),
        beat_savior_repository(context.db_client),
        beat_savior_players_repository(context.db_client),
        player_service,
        policy=RefreshPolicy(player_service.is_main_player, honor_recent_play=config.honor_recent_play),
        context=context,
    )
