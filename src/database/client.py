"""
Database client factory for the ReRide API
Selects the backend adapter named by DATABASE_BACKEND
"""

from typing import Optional

import structlog

from src.config import get_api_config
from src.database.base import DatabaseAdapter
from src.database.firebase_backend import FirebaseDatabase
from src.database.memory_backend import MemoryDatabase
from src.database.mongodb_backend import MongoDatabase
from src.database.supabase_backend import SupabaseDatabase
from src.errors import DatabaseNotConfiguredError

logger = structlog.get_logger()

# Singleton instance
_db_client: Optional[DatabaseAdapter] = None


def _build_client() -> DatabaseAdapter:
    config = get_api_config()
    backend = config.database_backend

    if backend == "memory":
        return MemoryDatabase()

    if backend == "supabase":
        if not config.supabase_url or not config.supabase_key:
            raise DatabaseNotConfiguredError(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY (or SUPABASE_ANON_KEY) must be set"
            )
        return SupabaseDatabase(config.supabase_url, config.supabase_key)

    if backend == "firebase":
        if not config.firebase_database_url or not config.firebase_service_account_key:
            raise DatabaseNotConfiguredError(
                "FIREBASE_DATABASE_URL and FIREBASE_SERVICE_ACCOUNT_KEY must be set"
            )
        return FirebaseDatabase(config.firebase_database_url, config.firebase_service_account_key)

    if not config.mongodb_uri:
        raise DatabaseNotConfiguredError("MONGODB_URI must be set")
    return MongoDatabase(config.mongodb_uri, config.mongodb_database)


def get_db_client() -> DatabaseAdapter:
    """
    Get or create singleton database client
    Reads configuration from environment variables
    """
    global _db_client

    if _db_client is None:
        _db_client = _build_client()
        logger.info("database_client_created", backend=_db_client.name)

    return _db_client


def set_db_client(client: Optional[DatabaseAdapter]) -> None:
    """Replace the singleton; None forces a rebuild on next use"""
    global _db_client
    _db_client = client
