"""
Firebase Realtime Database backend (firebase-admin)
"""

import json
from typing import Any, Dict, List, Optional

import firebase_admin
from firebase_admin import credentials, db

from src.database.base import DatabaseAdapter, with_id


class FirebaseDatabase(DatabaseAdapter):
    """
    Realtime Database client; each collection is a top-level path
    """

    name = "firebase"
    APP_NAME = "reride-api"

    def __init__(self, database_url: str, service_account_key: str):
        """
        Initialize the firebase-admin app

        Args:
            database_url: https://<project>.firebaseio.com
            service_account_key: Service account JSON document
        """
        try:
            self.app = firebase_admin.get_app(self.APP_NAME)
        except ValueError:
            cred = credentials.Certificate(json.loads(service_account_key))
            self.app = firebase_admin.initialize_app(
                cred,
                {"databaseURL": database_url},
                name=self.APP_NAME
            )

    def _ref(self, collection: str, record_id: Optional[str] = None):
        path = f"/{collection}" if record_id is None else f"/{collection}/{record_id}"
        return db.reference(path, app=self.app)

    # ===== READ OPERATIONS =====

    async def find_all(self, collection: str) -> List[Dict[str, Any]]:
        snapshot = self._ref(collection).get() or {}
        return [with_id(key, value) for key, value in snapshot.items() if isinstance(value, dict)]

    async def find_by_id(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        value = self._ref(collection, str(record_id)).get()
        return with_id(str(record_id), value) if isinstance(value, dict) else None

    async def find_by_field(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        """Requires an ``.indexOn`` rule for ``field`` on the collection"""
        snapshot = self._ref(collection).order_by_child(field).equal_to(value).get() or {}
        return [with_id(key, data) for key, data in snapshot.items()]

    # ===== WRITE OPERATIONS =====

    async def create(
        self,
        collection: str,
        data: Dict[str, Any],
        record_id: Optional[str] = None
    ) -> str:
        document = {k: v for k, v in data.items() if v is not None}
        if record_id is None:
            return self._ref(collection).push(document).key
        self._ref(collection, str(record_id)).set(document)
        return str(record_id)

    async def update(self, collection: str, record_id: str, updates: Dict[str, Any]) -> None:
        # Realtime Database deletes children written as null
        self._ref(collection, str(record_id)).update(updates)

    async def delete(self, collection: str, record_id: str) -> None:
        self._ref(collection, str(record_id)).delete()

    # ===== HEALTH =====

    async def ping(self) -> None:
        self._ref("users").order_by_key().limit_to_first(1).get()
