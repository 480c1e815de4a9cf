"""
Supabase (Postgres) backend

Each collection is a table shaped as ``(id text primary key, data jsonb,
updated_at timestamptz)`` so that every backend stores the same documents.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import uuid

from supabase import create_client, Client

from src.database.base import DatabaseAdapter, with_id


class SupabaseDatabase(DatabaseAdapter):
    """
    Supabase client for ReRide collections
    """

    name = "supabase"

    def __init__(self, supabase_url: str, supabase_key: str):
        """Initialize Supabase client"""
        self.client: Client = create_client(supabase_url, supabase_key)

    @staticmethod
    def _to_record(row: Dict[str, Any]) -> Dict[str, Any]:
        return with_id(row["id"], row.get("data") or {})

    # ===== READ OPERATIONS =====

    async def find_all(self, collection: str) -> List[Dict[str, Any]]:
        result = self.client.table(collection).select("id, data").execute()
        return [self._to_record(row) for row in result.data]

    async def find_by_id(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        result = self.client.table(collection).select("id, data").eq("id", str(record_id)).execute()
        return self._to_record(result.data[0]) if result.data else None

    async def find_by_field(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        """Filter on a top-level document key through PostgREST's JSON operator"""
        if isinstance(value, bool):
            value = "true" if value else "false"
        result = (
            self.client.table(collection)
            .select("id, data")
            .eq(f"data->>{field}", str(value))
            .execute()
        )
        return [self._to_record(row) for row in result.data]

    # ===== WRITE OPERATIONS =====

    async def create(
        self,
        collection: str,
        data: Dict[str, Any],
        record_id: Optional[str] = None
    ) -> str:
        key = str(record_id) if record_id is not None else uuid.uuid4().hex
        document = {k: v for k, v in data.items() if v is not None}
        self.client.table(collection).upsert({
            "id": key,
            "data": document,
            "updated_at": datetime.now(timezone.utc).isoformat()
        }).execute()
        return key

    async def update(self, collection: str, record_id: str, updates: Dict[str, Any]) -> None:
        """
        Merge updates into the stored document
        PostgREST cannot patch inside jsonb, so the document is rewritten
        """
        result = self.client.table(collection).select("data").eq("id", str(record_id)).execute()
        if not result.data:
            raise KeyError(f"{collection}/{record_id} not found")

        document = dict(result.data[0].get("data") or {})
        for field, value in updates.items():
            if value is None:
                document.pop(field, None)
            else:
                document[field] = value

        self.client.table(collection).update({
            "data": document,
            "updated_at": datetime.now(timezone.utc).isoformat()
        }).eq("id", str(record_id)).execute()

    async def delete(self, collection: str, record_id: str) -> None:
        self.client.table(collection).delete().eq("id", str(record_id)).execute()

    # ===== HEALTH =====

    async def ping(self) -> None:
        self.client.table("users").select("id").limit(1).execute()
