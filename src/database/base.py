"""
Backend-neutral database adapter interface

Every backend stores records in named collections keyed by a string id.
Records are plain dicts; the key is always exposed as ``id``.
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class Collections:
    """Collection (table / path) names shared by every backend"""
    USERS = "users"
    VEHICLES = "vehicles"
    VEHICLE_DATA = "vehicle_data"
    NEW_CARS = "new_cars"
    CONVERSATIONS = "conversations"
    NOTIFICATIONS = "notifications"
    PLANS = "plans"
    PAYMENT_REQUESTS = "payment_requests"
    FAQS = "faqs"
    SUPPORT_TICKETS = "support_tickets"
    SELL_CAR_SUBMISSIONS = "sell_car_submissions"
    BUYER_ACTIVITY = "buyer_activity"
    SERVICES = "services"
    SERVICE_PROVIDERS = "service_providers"
    PROVIDER_SERVICES = "provider_services"
    SERVICE_REQUESTS = "service_requests"
    CHAT_MESSAGES = "chat_messages"
    CHAT_SESSIONS = "chat_sessions"


_EMAIL_KEY_PATTERN = re.compile(r"[.#$\[\]]")


def email_to_key(email: str) -> str:
    """Convert an email into a record key safe for every backend"""
    return _EMAIL_KEY_PATTERN.sub("_", email.lower().strip())


def with_id(record_id: Any, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Attach the record key as ``id`` unless the record carries its own"""
    record = {"id": record_id}
    record.update(data or {})
    return record


class DatabaseAdapter(ABC):
    """
    Common CRUD surface implemented by the Supabase, Firebase,
    MongoDB and in-memory backends
    """

    name = "base"

    # ===== READ OPERATIONS =====

    @abstractmethod
    async def find_all(self, collection: str) -> List[Dict[str, Any]]:
        """Return every record in a collection"""

    @abstractmethod
    async def find_by_id(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Return a single record or None"""

    async def find_by_field(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        """
        Return records whose ``field`` equals ``value``
        Backends override this with a native query where they have one
        """
        records = await self.find_all(collection)
        return [r for r in records if r.get(field) == value]

    async def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Look up a user by email key, then by email field"""
        if not email:
            return None
        normalized = email.lower().strip()
        user = await self.find_by_id(Collections.USERS, email_to_key(normalized))
        if user:
            return user
        matches = await self.find_by_field(Collections.USERS, "email", normalized)
        return matches[0] if matches else None

    # ===== WRITE OPERATIONS =====

    @abstractmethod
    async def create(
        self,
        collection: str,
        data: Dict[str, Any],
        record_id: Optional[str] = None
    ) -> str:
        """Create (or overwrite) a record and return its id"""

    @abstractmethod
    async def update(self, collection: str, record_id: str, updates: Dict[str, Any]) -> None:
        """Merge ``updates`` into a record; None values remove the field"""

    @abstractmethod
    async def delete(self, collection: str, record_id: str) -> None:
        """Delete a record"""

    # ===== HEALTH =====

    @abstractmethod
    async def ping(self) -> None:
        """Raise if the backend is unreachable"""
