"""Key-value and vector memory used by summarizing and retrieval strategies."""

from .key_value import InMemoryStore, KVStore, MemoryEntry
from .user_scoped import UserScopedStore, UserScopedVectorStore
from .vector import InMemoryVectorStore, VectorSearchResult, VectorStore, cosine_similarity

__all__ = [
    "KVStore",
    "MemoryEntry",
    "InMemoryStore",
    "VectorStore",
    "VectorSearchResult",
    "InMemoryVectorStore",
    "UserScopedStore",
    "UserScopedVectorStore",
    "cosine_similarity",
]
