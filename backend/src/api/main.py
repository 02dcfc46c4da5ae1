"""
Backend API: stored BeatSavior plays per player, plus on-demand refresh.
"""

import sys
from pathlib import Path

from dotenv import load_dotenv

# Load .env and ensure backend/src is on path
backend_dir = Path(__file__).resolve().parent.parent.parent
load_dotenv(backend_dir / ".env")
sys.path.insert(0, str(backend_dir / "src"))

import logging

from fastapi import Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware

from config import Config
from database.supabase_client import SupabaseClient
from ranking_api.client import Priority
from refresh.beat_savior import BeatSaviorDataRefresher, create_beat_savior_refresher
from services.context import BEAT_SAVIOR, ServiceContext

logger = logging.getLogger(__name__)

app = FastAPI(title="Score Refresh API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Lazy init so we don't require Supabase in tests
_context: ServiceContext | None = None
_refresher: BeatSaviorDataRefresher | None = None


def get_refresher() -> BeatSaviorDataRefresher:
    global _context, _refresher
    if _refresher is None:
        config = Config()
        _context = ServiceContext(config, SupabaseClient(config))
        _refresher = _context.acquire(BEAT_SAVIOR, create_beat_savior_refresher)
    return _refresher


@app.on_event("shutdown")
async def _release_services():
    global _refresher
    if _context is not None and _refresher is not None:
        _refresher = None
        await _context.release(BEAT_SAVIOR)


@app.get("/api/v1/players/{player_id}/beat-savior")
async def get_player_beat_savior(
    player_id: str,
    refresher: BeatSaviorDataRefresher = Depends(get_refresher),
):
    """Every stored BeatSavior play of a player."""
    try:
        scores = await refresher.get_all_player_scores(player_id)
    except Exception as e:
        logger.warning("BeatSavior lookup failed", extra={"player_id": player_id, "error": str(e)})
        return {"playerId": player_id, "scores": [], "error": str(e)}
    return {"playerId": player_id, "scores": scores}


@app.get("/api/v1/players/{player_id}/beat-savior/available")
async def get_player_beat_savior_available(
    player_id: str,
    refresher: BeatSaviorDataRefresher = Depends(get_refresher),
):
    try:
        available = await refresher.is_data_for_player_available(player_id)
    except Exception as e:
        return {"playerId": player_id, "available": False, "error": str(e)}
    return {"playerId": player_id, "available": available}


@app.post("/api/v1/players/{player_id}/beat-savior/refresh")
async def refresh_player_beat_savior(
    player_id: str,
    force: bool = Query(False, description="Ignore the staleness window"),
    refresher: BeatSaviorDataRefresher = Depends(get_refresher),
):
    """Refresh one player. ``refreshed`` is false when the data was still fresh or the fetch failed."""
    records = await refresher.refresh(player_id, force=force, priority=Priority.FG_HIGH)
    return {
        "playerId": player_id,
        "refreshed": bool(records),
        "count": len(records) if records else 0,
    }
