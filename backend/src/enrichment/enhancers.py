"""
Score row enhancers.

An enhancer is ``(draft, player_id) -> draft | None`` (sync or async). It
mutates the draft it is given; the pipeline records what changed. Only the
enhancers that live on top of this service are implemented here, the rest
default to pass-through and are injected by the caller.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

Row = Dict[str, Any]
Enhancer = Callable[[Row, Any], Union[Optional[Row], Awaitable[Optional[Row]]]]


def passthrough(draft: Row, player_id: Any = None) -> Row:
    return draft


def acc_enhancer(draft: Row, player_id: Any = None) -> Row:
    """Accuracy in percent from the base score and the map's max score."""
    score = draft.get("score")
    max_score = (draft.get("leaderboard") or {}).get("maxScore")
    if not isinstance(score, dict) or score.get("acc") is not None:
        return draft
    value = score.get("score")
    if isinstance(value, (int, float)) and isinstance(max_score, (int, float)) and max_score > 0:
        score["acc"] = value / max_score * 100
        score["percentage"] = score["acc"]
    return draft


def make_beat_savior_enhancer(refresher) -> Enhancer:
    """Attach the matching stored BeatSavior play as ``beatSavior``."""

    async def beat_savior_enhancer(draft: Row, player_id: Any = None) -> Row:
        if player_id is None:
            return draft
        data = await refresher.get(player_id, draft)
        if data:
            draft["beatSavior"] = data
        return draft

    return beat_savior_enhancer


@dataclass
class EnhancerSet:
    """Every enhancer the pipeline may schedule."""

    beatmaps: Enhancer = passthrough
    acc: Enhancer = acc_enhancer
    diff: Enhancer = passthrough
    compare: Enhancer = passthrough
    twitch: Enhancer = passthrough
    rankeds: Enhancer = passthrough
    pp_attribution: Enhancer = passthrough
    has_replay: Enhancer = passthrough
    beat_savior: Enhancer = passthrough
