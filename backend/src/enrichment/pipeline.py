"""
Incremental enrichment pipeline for score rows.

Every fetched collection is enriched row by row by chains of enhancers.
Each finished stage rebuilds its row from the base row plus all patches
recorded for it, and schedules a debounced publish of the whole snapshot,
so subscribers see rows fill in as stages complete.

When the player, service or parameters change, the previous run's patches
are dropped and everything it still has in flight is ignored on arrival.
"""

import asyncio
import copy
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from enrichment.enhancers import Enhancer, EnhancerSet
from enrichment.patches import PatchStore, Row, produce
from enrichment.task import EnhanceTaskGuard, enhance_task_id, patch_id
from utils.debounce import TrailingDebouncer

logger = logging.getLogger(__name__)

PUBLISH_DEBOUNCE_SECONDS = 0.2
ALTERNATE_SERVICE = "accsaber"
LIVE_STATE = "live"


class EnrichmentPipeline:
    """Runs enhancer chains over a score collection and republishes the patched snapshot."""

    def __init__(
        self,
        publish: Callable[[List[Row]], Any],
        enhancers: Optional[EnhancerSet] = None,
        debounce_seconds: float = PUBLISH_DEBOUNCE_SECONDS,
    ):
        self.publish = publish
        self.enhancers = enhancers or EnhancerSet()
        self.guard = EnhanceTaskGuard()
        self.patches = PatchStore()

        self._player_id: Any = None
        self._snapshot: List[Row] = []
        self._base: Dict[str, Row] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._debounced_publish = TrailingDebouncer(self._publish, debounce_seconds)

    @property
    def current_task_id(self) -> Optional[str]:
        return self.guard.current

    @property
    def snapshot(self) -> List[Row]:
        return list(self._snapshot)

    def _chains(self, service: Optional[str], state_type: Optional[str]) -> List[List[Enhancer]]:
        e = self.enhancers
        if service == ALTERNATE_SERVICE:
            return [[e.beatmaps, e.twitch, e.beat_savior]]

        chains = [
            [e.beatmaps, e.acc, e.diff, e.compare, e.twitch],
            [e.rankeds],
            [e.pp_attribution],
            [e.has_replay],
        ]
        if state_type == LIVE_STATE:
            chains.append([e.beat_savior])
        return chains

    def on_new_data(
        self,
        rows: Sequence[Row],
        player_id: Any,
        service: Optional[str],
        service_params: Any,
        state_type: Optional[str] = None,
    ) -> List[asyncio.Task]:
        """
        Start enriching a freshly committed collection.

        Must be called from the event loop. Returns the scheduled chain tasks
        (callers normally ignore them; they finish on their own).
        """
        task_id = enhance_task_id(player_id, service, service_params)
        if self.guard.activate(task_id):
            self.patches.clear()
            logger.debug("New enhance task", extra={"task_id": task_id})

        self._player_id = player_id
        self._snapshot = list(rows)
        self._base = {patch_id(player_id, row): copy.deepcopy(row) for row in rows}

        scheduled = []
        for row in self._snapshot:
            for chain in self._chains(service, state_type):
                scheduled.append(self._spawn(self._run_chain(task_id, player_id, row, chain)))

        logger.debug("Enhancement scheduled", extra={
            "task_id": task_id,
            "rows": len(self._snapshot),
            "chains": len(scheduled),
        })

        return scheduled

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_chain(self, task_id: str, player_id: Any, row: Row, chain: Sequence[Enhancer]) -> None:
        row_id = patch_id(player_id, row)
        current: Optional[Row] = row
        for enhancer in chain:
            try:
                enhanced, operations = await produce(current, enhancer, player_id)
            except Exception as e:
                logger.warning("Enhancer failed", extra={
                    "task_id": task_id,
                    "row_id": row_id,
                    "enhancer": getattr(enhancer, "__name__", repr(enhancer)),
                    "error": str(e),
                })
                return

            if not self.guard.is_current(task_id):
                logger.debug("Dropping stale enhancer result", extra={"task_id": task_id, "row_id": row_id})
                return

            self.patches.record(row_id, operations)

            current = self._set_state_row(task_id, row_id)
            if current is None:
                return

    def _set_state_row(self, task_id: str, row_id: str) -> Optional[Row]:
        """Rebuild one row of the latest snapshot from its base and patches, then schedule a publish."""
        if not self.guard.is_current(task_id):
            return None

        index = next(
            (i for i, r in enumerate(self._snapshot) if patch_id(self._player_id, r) == row_id),
            -1,
        )
        base = self._base.get(row_id)
        if index < 0 or base is None:
            return None

        try:
            self._snapshot[index] = self.patches.apply(row_id, base)
        except Exception as e:
            logger.warning("Could not apply enhancer patches", extra={
                "task_id": task_id,
                "row_id": row_id,
                "error": str(e),
            })
            return None

        self._debounced_publish(task_id)

        return self._snapshot[index]

    def _publish(self, task_id: str) -> None:
        # Timers scheduled by a superseded task may still fire
        if not self.guard.is_current(task_id):
            logger.debug("Skipping stale publish", extra={"task_id": task_id})
            return
        self.publish(list(self._snapshot))

    async def wait(self) -> None:
        """Wait until every scheduled chain has finished (publishes may still be pending)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_publish(self) -> None:
        self._debounced_publish.cancel()
