from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from database.repository import beat_savior_players_repository, beat_savior_repository

T = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_set_writes_key_data_and_index_columns():
    db = MagicMock()
    repo = beat_savior_repository(db)

    await repo.set({"beatSaviorId": "r1", "playerId": "P", "hash": "abc", "timeSet": T, "stats": {"won": True}})

    table, row = db.upsert.call_args.args
    assert table == "beat_savior"
    assert db.upsert.call_args.kwargs == {"on_conflict": "key"}
    assert row["key"] == "r1"
    assert row["player_id"] == "P"
    assert row["hash"] == "abc"
    assert row["data"]["timeSet"] == T.isoformat()


@pytest.mark.asyncio
async def test_set_without_key_raises():
    repo = beat_savior_repository(MagicMock())

    with pytest.raises(ValueError):
        await repo.set({"playerId": "P"})


@pytest.mark.asyncio
async def test_dates_survive_round_trip():
    db = MagicMock()
    db.select_one.return_value = {"data": {"playerId": "P", "lastRefresh": T.isoformat()}}
    repo = beat_savior_players_repository(db)

    record = await repo.get("P")

    assert record == {"playerId": "P", "lastRefresh": T}
    db.select_one.assert_called_once_with("beat_savior_players", "key", "P")


@pytest.mark.asyncio
async def test_missing_row_is_none():
    db = MagicMock()
    db.select_one.return_value = None

    assert await beat_savior_players_repository(db).get("P") is None


@pytest.mark.asyncio
async def test_index_lookup_uses_index_column():
    db = MagicMock()
    db.select_eq.return_value = [
        {"data": {"beatSaviorId": "r1", "playerId": "P", "timeSet": "2024-05-01T12:00:00+00:00"}},
        {"data": None},
    ]
    repo = beat_savior_repository(db)

    records = await repo.get_all_from_index("beat-savior-playerId", "P")

    db.select_eq.assert_called_once_with("beat_savior", "player_id", "P", "data")
    assert records == [{"beatSaviorId": "r1", "playerId": "P", "timeSet": T}]


@pytest.mark.asyncio
async def test_unknown_index_raises():
    repo = beat_savior_repository(MagicMock())

    with pytest.raises(KeyError):
        await repo.get_from_index("beat-savior-mapper", "x")
