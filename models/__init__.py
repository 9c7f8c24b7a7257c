"""Credential store models and storage backends."""
from models.db_storage import DBStorage
from models.memory_storage import MemoryStorage
from models.refresh_token import RefreshToken, RefreshTokenHistory
from models.user import User


def make_storage(backend: str, database_url: str | None = None, echo: bool = False):
    """Build and reload the storage backend named by STORAGE_BACKEND."""
    if backend == "memory":
        storage = MemoryStorage()
    elif backend == "sql":
        if not database_url:
            raise ValueError("DATABASE_URL is required for the sql storage backend")
        storage = DBStorage(database_url, echo=echo)
    else:
        raise ValueError(f"Unknown storage backend: {backend}")
    storage.reload()
    return storage


__all__ = ["DBStorage", "MemoryStorage", "RefreshToken", "RefreshTokenHistory", "User", "make_storage"]
