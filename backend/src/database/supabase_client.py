"""
Supabase client for database operations.

Thin, table-generic wrapper: the repositories decide table names, keys and
indexes; this class only issues the queries. Calls are synchronous, callers
on the event loop push them to an executor.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from supabase import create_client, Client

from config import Config

logger = logging.getLogger(__name__)


class SupabaseClient:
    """Client for interacting with Supabase database."""

    def __init__(self, config: Config):
        self.config = config
        self.client: Optional[Client] = None
        self._initialize_client()

    def _initialize_client(self):
        """Initialize Supabase client."""
        if not self.config.supabase_url or not self.config.supabase_key:
            raise ValueError("Supabase URL and key are required")

        # Use service key if available for writes, otherwise use anon key
        key = self.config.supabase_service_key or self.config.supabase_key

        self.client = create_client(
            self.config.supabase_url,
            key
        )

        logger.info("Initialized Supabase client", extra={
            "url": self.config.supabase_url,
            "using_service_key": bool(self.config.supabase_service_key)
        })

    def upsert(
        self,
        table: str,
        rows: Union[Dict[str, Any], List[Dict[str, Any]]],
        on_conflict: str
    ) -> List[Dict[str, Any]]:
        """
        Upsert one row or a batch of rows.

        Args:
            table: Table name
            rows: Single row dict or list of dicts
            on_conflict: Comma-separated conflict columns
        """
        batch = rows if isinstance(rows, list) else [rows]
        if not batch:
            return []
        result = self.client.table(table).upsert(
            batch,
            on_conflict=on_conflict
        ).execute()
        return result.data or []

    def select_eq(
        self,
        table: str,
        column: str,
        value: Any,
        columns: str = "*",
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Rows where ``column = value``."""
        query = self.client.table(table).select(columns).eq(column, value)
        if limit:
            query = query.limit(limit)
        result = query.execute()
        return result.data or []

    def select_one(self, table: str, column: str, value: Any, columns: str = "*") -> Optional[Dict[str, Any]]:
        """First row where ``column = value``, or None."""
        rows = self.select_eq(table, column, value, columns=columns, limit=1)
        return rows[0] if rows else None

    def select_all(self, table: str, columns: str = "*") -> List[Dict[str, Any]]:
        result = self.client.table(table).select(columns).execute()
        return result.data or []
