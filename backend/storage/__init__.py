from backend.storage.base import Storage
from backend.storage.memory_storage import MemoryStorage
from backend.storage.db_storage import DatabaseStorage

__all__ = ["Storage", "MemoryStorage", "DatabaseStorage"]
