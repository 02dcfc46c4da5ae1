"""
Key/value object repositories on top of Supabase.

Each repository is one table shaped as ``key`` (primary key), one column per
secondary index, and ``data`` (jsonb holding the whole record verbatim).
Records go in and come out as plain dicts; datetimes survive the round trip
for the fields listed in ``date_fields``.
"""

import asyncio
import logging
import re
from datetime import datetime
from functools import partial
from typing import Any, Dict, Iterable, List, Optional

from database.supabase_client import SupabaseClient
from utils.dates import to_datetime

logger = logging.getLogger(__name__)


def _column(field: str) -> str:
    """'playerId' -> 'player_id'"""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", field).lower()


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    return value


def _decode(value: Any, date_fields: frozenset) -> Any:
    if isinstance(value, dict):
        return {
            k: to_datetime(v) if k in date_fields else _decode(v, date_fields)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_decode(v, date_fields) for v in value]
    return value


class Repository:
    """Key/value object store keyed by ``key_field`` with named secondary indexes."""

    def __init__(
        self,
        db_client: SupabaseClient,
        table: str,
        key_field: str,
        indexes: Optional[Dict[str, str]] = None,
        date_fields: Iterable[str] = (),
    ):
        self.db_client = db_client
        self.table = table
        self.key_field = key_field
        # index name -> record field
        self.indexes = dict(indexes or {})
        self.date_fields = frozenset(date_fields)

    async def _run(self, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(fn, *args, **kwargs))

    def _to_row(self, record: Dict[str, Any]) -> Dict[str, Any]:
        key = record.get(self.key_field)
        if key is None:
            raise ValueError(f"{self.table}: record has no '{self.key_field}'")
        row = {"key": str(key), "data": _encode(record)}
        for field in self.indexes.values():
            row[_column(field)] = _encode(record.get(field))
        return row

    def _from_row(self, row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if not row or row.get("data") is None:
            return None
        return _decode(row["data"], self.date_fields)

    def _index_column(self, index_name: str) -> str:
        if index_name not in self.indexes:
            raise KeyError(f"{self.table}: unknown index '{index_name}'")
        return _column(self.indexes[index_name])

    async def set(self, record: Dict[str, Any]) -> None:
        """Insert or overwrite a record."""
        await self._run(self.db_client.upsert, self.table, self._to_row(record), on_conflict="key")

    async def get(self, key: Any) -> Optional[Dict[str, Any]]:
        row = await self._run(self.db_client.select_one, self.table, "key", str(key))
        return self._from_row(row)

    async def get_all(self) -> List[Dict[str, Any]]:
        rows = await self._run(self.db_client.select_all, self.table, "data")
        return [r for r in (self._from_row(row) for row in rows) if r is not None]

    async def get_all_from_index(self, index_name: str, value: Any) -> List[Dict[str, Any]]:
        column = self._index_column(index_name)
        rows = await self._run(self.db_client.select_eq, self.table, column, value, "data")
        return [r for r in (self._from_row(row) for row in rows) if r is not None]

    async def get_from_index(self, index_name: str, value: Any) -> Optional[Dict[str, Any]]:
        column = self._index_column(index_name)
        row = await self._run(self.db_client.select_one, self.table, column, value, "data")
        return self._from_row(row)


def beat_savior_repository(db_client: SupabaseClient) -> Repository:
    """Processed BeatSavior plays, one row per play."""
    return Repository(
        db_client,
        "beat_savior",
        "beatSaviorId",
        {
            "beat-savior-playerId": "playerId",
            "beat-savior-hash": "hash",
        },
        date_fields=("timeSet",),
    )


def beat_savior_players_repository(db_client: SupabaseClient) -> Repository:
    """Per-player BeatSavior refresh stamps."""
    return Repository(db_client, "beat_savior_players", "playerId", date_fields=("lastRefresh",))


def players_repository(db_client: SupabaseClient) -> Repository:
    """Players cached locally (anyone the user has looked up or follows)."""
    return Repository(
        db_client,
        "players",
        "playerId",
        date_fields=("recentPlay", "lastRefresh"),
    )
