# Storage layer - backend-agnostic adapter contract and its implementations

from .base import StorageAdapter
from .memory_adapter import MemoryStorageAdapter
from .sql_adapter import SqlStorageAdapter

__all__ = [
    "StorageAdapter",
    "MemoryStorageAdapter",
    "SqlStorageAdapter",
]
