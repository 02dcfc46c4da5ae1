"""
Enhance task identity.

An enhance task is "the enrichment run for this player, service and
parameters". Only one is current; work tagged with any other id is stale
and gets dropped when it completes.
"""

import json
from typing import Any, Dict, Optional


def stable_stringify(value: Any) -> str:
    """Key-order independent serialisation, used for structural equality of query params."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def enhance_task_id(player_id: Any, service: Optional[str], service_params: Any) -> str:
    return f"{player_id}/{service}/{stable_stringify(service_params)}"


def patch_id(player_id: Any, score_row: Optional[Dict[str, Any]]) -> str:
    """Row identity across fetches: positions shift, leaderboard ids do not."""
    leaderboard = (score_row or {}).get("leaderboard") or {}
    return f"{player_id}/{leaderboard.get('leaderboardId')}"


class EnhanceTaskGuard:
    """Tracks the current enhance task id."""

    def __init__(self):
        self.current: Optional[str] = None

    def activate(self, task_id: str) -> bool:
        """Make ``task_id`` current. Returns True if it replaced a different task."""
        if self.current == task_id:
            return False
        self.current = task_id
        return True

    def is_current(self, task_id: str) -> bool:
        return task_id is not None and task_id == self.current
