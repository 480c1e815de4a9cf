"""
In-process database backend used for tests and local development
"""

import copy
import uuid
from typing import Any, Dict, List, Optional

from src.database.base import DatabaseAdapter, with_id


class MemoryDatabase(DatabaseAdapter):
    """Dict-backed store; every read and write copies so callers never share state"""

    name = "memory"

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def _table(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    def clear(self) -> None:
        self._collections.clear()

    async def find_all(self, collection: str) -> List[Dict[str, Any]]:
        return [
            with_id(key, copy.deepcopy(data))
            for key, data in self._table(collection).items()
        ]

    async def find_by_id(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        data = self._table(collection).get(str(record_id))
        if data is None:
            return None
        return with_id(str(record_id), copy.deepcopy(data))

    async def create(
        self,
        collection: str,
        data: Dict[str, Any],
        record_id: Optional[str] = None
    ) -> str:
        key = str(record_id) if record_id is not None else uuid.uuid4().hex
        self._table(collection)[key] = {
            k: copy.deepcopy(v) for k, v in data.items() if v is not None
        }
        return key

    async def update(self, collection: str, record_id: str, updates: Dict[str, Any]) -> None:
        table = self._table(collection)
        key = str(record_id)
        if key not in table:
            raise KeyError(f"{collection}/{key} not found")
        record = table[key]
        for field, value in updates.items():
            if value is None:
                record.pop(field, None)
            else:
                record[field] = copy.deepcopy(value)

    async def delete(self, collection: str, record_id: str) -> None:
        self._table(collection).pop(str(record_id), None)

    async def ping(self) -> None:
        return None
