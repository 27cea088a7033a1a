"""
Supabase-backed record store.

The supabase client is synchronous, so calls run in a worker thread.
"""

import asyncio
from functools import lru_cache
from typing import Any, Dict, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from previz.core.constants import PROJECTS_TABLE
from previz.core.exceptions import MissingConfigError, PersistenceError
from previz.core.logging_config import get_logger
from previz.core.settings import get_settings
from previz.storage.record_store import RecordStore

logger = get_logger("storage.supabase")


@lru_cache()
def get_supabase_client() -> Client:
    """Supabase client using the service key when present, else the anon key."""
    settings = get_settings()
    key = settings.supabase_service_key or settings.supabase_anon_key
    if not settings.supabase_url or not key:
        raise MissingConfigError("Supabase URL and key must be configured")
    return create_client(settings.supabase_url, key)


class SupabaseRecordStore(RecordStore):
    """Records in a Supabase table (``storyboard_projects`` by default)."""

    def __init__(self, client: Client = None, table: str = PROJECTS_TABLE):
        self._client = client
        self.table = table

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    async def _run(self, operation: str, build):
        try:
            response = await asyncio.to_thread(lambda: build(self.client.table(self.table)).execute())
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"Supabase {operation} failed on {self.table}: {e}")
            raise PersistenceError(f"Failed to {operation} record: {e}")
        return response.data

    async def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        payload = {k: v for k, v in record.items() if not (k == "id" and not v)}
        rows = await self._run("insert", lambda t: t.insert(payload))
        if not rows:
            raise PersistenceError("Insert returned no row")
        return rows[0]

    async def fetch(self, record_id: str) -> Optional[Dict[str, Any]]:
        rows = await self._run("fetch", lambda t: t.select("*").eq("id", record_id).limit(1))
        return rows[0] if rows else None

    async def fetch_by_owner(self, owner_id: str) -> List[Dict[str, Any]]:
        return await self._run(
            "list",
            lambda t: t.select("*").eq("user_id", owner_id).order("updated_at", desc=True),
        )

    async def update(self, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        rows = await self._run("update", lambda t: t.update(fields).eq("id", record_id))
        if not rows:
            raise PersistenceError(f"Record not found: {record_id}")
        return rows[0]

    async def delete(self, record_id: str) -> bool:
        rows = await self._run("delete", lambda t: t.delete().eq("id", record_id))
        return bool(rows)
