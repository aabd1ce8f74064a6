from .database import SQLiteMemoryDB
from .memory_policy_guard import MemoryPolicyError, MemoryPolicyGuard
from .service import DOCUMENT_FETCH_LIMIT, MemoryService

__all__ = [
    "DOCUMENT_FETCH_LIMIT",
    "SQLiteMemoryDB",
    "MemoryService",
    "MemoryPolicyGuard",
    "MemoryPolicyError",
]
