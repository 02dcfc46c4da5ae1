"""
Scores store.

Holds one player's score page for one service, notifies subscribers on
every change, and feeds each committed page into the enrichment pipeline.
Fetches are skipped when nothing about the query changed.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from enrichment.enhancers import EnhancerSet
from enrichment.pipeline import LIVE_STATE, PUBLISH_DEBOUNCE_SECONDS, EnrichmentPipeline
from enrichment.provider import ApiScoresProvider
from enrichment.task import stable_stringify
from ranking_api.client import Priority

logger = logging.getLogger(__name__)

DEFAULT_SERVICE = "scoresaber"
DEFAULT_SERVICE_PARAMS = {"type": "recent", "page": 1}


class ScoresStore:
    """Observable score collection for one (player, service, params) query at a time."""

    def __init__(
        self,
        provider: ApiScoresProvider,
        player_id: Optional[str] = None,
        service: str = DEFAULT_SERVICE,
        service_params: Optional[Dict[str, Any]] = None,
        initial_state: Any = None,
        initial_state_type: str = "initial",
        enhancers: Optional[EnhancerSet] = None,
        debounce_seconds: float = PUBLISH_DEBOUNCE_SECONDS,
    ):
        self.provider = provider
        self._player_id = player_id
        self._service = service
        self._service_params = dict(service_params) if service_params is not None else dict(DEFAULT_SERVICE_PARAMS)
        self._initial_state = initial_state
        self._initial_state_type = initial_state_type

        self._state: Any = None
        self._total_scores: Optional[int] = None
        self._subscribers: List[Callable[[Any], Any]] = []
        self._fetch_seq = 0

        self.pending = False
        self.error: Optional[Exception] = None
        self.pipeline = EnrichmentPipeline(self.set, enhancers, debounce_seconds)

    @property
    def player_id(self) -> Optional[str]:
        return self._player_id

    @property
    def service(self) -> str:
        return self._service

    @property
    def service_params(self) -> Dict[str, Any]:
        return dict(self._service_params)

    @property
    def total_scores(self) -> Optional[int]:
        return self._total_scores

    def subscribe(self, callback: Callable[[Any], Any]) -> Callable[[], None]:
        """Register ``callback(state)`` for every change. Returns the unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def get(self) -> Any:
        return self._state

    def set(self, state: Any) -> None:
        self._state = state
        for callback in list(self._subscribers):
            callback(state)

    def _on_before_state_change(self, state: Any) -> Any:
        """Unwrap ``{"scores", "total"}`` responses and remember the total."""
        if isinstance(state, dict) and state.get("scores") is not None:
            self._total_scores = state.get("total")
            return state["scores"]

        self._total_scores = None if state is not None else 0
        return state

    def _commit(
        self,
        state: Any,
        state_type: str,
        player_id: Optional[str] = None,
        service: Optional[str] = None,
        service_params: Optional[Dict[str, Any]] = None,
    ) -> None:
        # The query only becomes current together with its data
        if player_id is not None:
            self._player_id = player_id
        if service is not None:
            self._service = service
        if service_params is not None:
            self._service_params = dict(service_params)

        rows = self._on_before_state_change(state)
        self.set(rows)
        if isinstance(rows, list):
            self.pipeline.on_new_data(rows, self._player_id, self._service, self._service_params, state_type)

    async def initialize(self) -> None:
        """Enrich the initial state, or fetch the configured query if there is none."""
        if self._initial_state is not None:
            self._commit(self._initial_state, self._initial_state_type)
        elif self._player_id:
            await self.fetch(force=True)

    def _is_same_query(self, service_params, service, player_id) -> bool:
        return (
            (not player_id or player_id == self._player_id)
            and (not service or stable_stringify(service) == stable_stringify(self._service))
            and (not service_params or stable_stringify(service_params) == stable_stringify(self._service_params))
        )

    async def fetch(
        self,
        service_params: Optional[Dict[str, Any]] = None,
        service: Optional[str] = None,
        player_id: Optional[str] = None,
        force: bool = False,
        priority: Priority = Priority.FG_LOW,
    ) -> bool:
        """
        Fetch scores for a query; omitted arguments keep their current value.

        Returns:
            True if new data was committed. False when the query is unchanged
            and not forced (no request is made), when the fetch failed, or
            when a newer fetch superseded this one.
        """
        if not force and self._is_same_query(service_params, service, player_id):
            return False

        player_id = player_id or self._player_id
        service = service or self._service
        service_params = dict(service_params) if service_params else dict(self._service_params)

        self._fetch_seq += 1
        seq = self._fetch_seq
        self.pending = True

        try:
            data = await self.provider.get_data(player_id, service, service_params, priority)
        except Exception as e:
            if seq == self._fetch_seq:
                self.pending = False
                self.error = e
            logger.warning("Scores fetch failed", extra={
                "player_id": player_id,
                "scores_service": service,
                "error": str(e),
            })
            return False

        if seq != self._fetch_seq:
            logger.debug("Dropping superseded scores fetch", extra={"player_id": player_id})
            return False

        self.pending = False
        self.error = None
        self._commit(data, LIVE_STATE, player_id, service, service_params)

        return True

    async def refresh(self) -> bool:
        return await self.fetch(self._service_params, self._service, self._player_id, True)
