from src.database.base import Collections, DatabaseAdapter, email_to_key
from src.database.client import get_db_client, set_db_client
from src.database.memory_backend import MemoryDatabase

__all__ = [
    "Collections",
    "DatabaseAdapter",
    "MemoryDatabase",
    "email_to_key",
    "get_db_client",
    "set_db_client",
]
