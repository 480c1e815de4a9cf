"""
MongoDB backend (pymongo)
"""

from typing import Any, Dict, List, Optional
import uuid

from pymongo import MongoClient

from src.database.base import DatabaseAdapter, with_id


class MongoDatabase(DatabaseAdapter):
    """Each collection is a Mongo collection; ``_id`` holds the record key"""

    name = "mongodb"

    def __init__(self, uri: str, database: str):
        self.client = MongoClient(uri, serverSelectionTimeoutMS=5000)
        self.db = self.client[database]

    @staticmethod
    def _to_record(document: Dict[str, Any]) -> Dict[str, Any]:
        key = document.pop("_id")
        return with_id(str(key), document)

    # ===== READ OPERATIONS =====

    async def find_all(self, collection: str) -> List[Dict[str, Any]]:
        return [self._to_record(doc) for doc in self.db[collection].find({})]

    async def find_by_id(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        document = self.db[collection].find_one({"_id": str(record_id)})
        return self._to_record(document) if document else None

    async def find_by_field(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        return [self._to_record(doc) for doc in self.db[collection].find({field: value})]

    # ===== WRITE OPERATIONS =====

    async def create(
        self,
        collection: str,
        data: Dict[str, Any],
        record_id: Optional[str] = None
    ) -> str:
        key = str(record_id) if record_id is not None else uuid.uuid4().hex
        document = {k: v for k, v in data.items() if v is not None}
        document["_id"] = key
        self.db[collection].replace_one({"_id": key}, document, upsert=True)
        return key

    async def update(self, collection: str, record_id: str, updates: Dict[str, Any]) -> None:
        to_set = {k: v for k, v in updates.items() if v is not None}
        to_unset = {k: "" for k, v in updates.items() if v is None}

        operation: Dict[str, Any] = {}
        if to_set:
            operation["$set"] = to_set
        if to_unset:
            operation["$unset"] = to_unset
        if not operation:
            return

        result = self.db[collection].update_one({"_id": str(record_id)}, operation)
        if result.matched_count == 0:
            raise KeyError(f"{collection}/{record_id} not found")

    async def delete(self, collection: str, record_id: str) -> None:
        self.db[collection].delete_one({"_id": str(record_id)})

    # ===== HEALTH =====

    async def ping(self) -> None:
        self.client.admin.command("ping")
