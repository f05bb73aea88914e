"""Per-user and per-session views over shared key-value and vector stores."""

from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple, TypeVar

from .key_value import KVStore, MemoryEntry
from .vector import VectorSearchResult, VectorStore

T = TypeVar("T")


class UserScopedStore(KVStore[T]):
    """
    Key-value store that confines reads and writes to one user (and session).

    Keys are prefixed with ``user:<user_id>`` or
    ``user:<user_id>:session:<session_id>`` unless ``key_prefix`` overrides it,
    and every write carries ``user_id``/``session_id`` metadata. Keys returned
    by ``list`` have the prefix stripped.
    """

    def __init__(self,
                 store: KVStore[T],
                 user_id: str,
                 session_id: Optional[str] = None,
                 key_prefix: Optional[str] = None,
                 metadata: Optional[Dict[str, Any]] = None):
        """
        Initialize user-scoped store.

        Args:
            store: Shared backing store
            user_id: User the view belongs to
            session_id: Optional session for narrower scoping
            key_prefix: Custom key prefix replacing the derived one
            metadata: Extra metadata attached to every write
        """
        if not user_id:
            raise ValueError("user_id is required")
        self.store = store
        self.user_id = user_id
        self.session_id = session_id
        if key_prefix is None:
            key_prefix = f"user:{user_id}:session:{session_id}" if session_id else f"user:{user_id}"
        self.key_prefix = key_prefix
        self.metadata = dict(metadata or {})
        self.metadata["user_id"] = user_id
        if session_id:
            self.metadata["session_id"] = session_id

    def scoped_key(self, key: str) -> str:
        """Full backing-store key for ``key``; already scoped keys pass through."""
        prefix = f"{self.key_prefix}:"
        return key if key.startswith(prefix) else prefix + key

    def unscoped_key(self, key: str) -> str:
        prefix = f"{self.key_prefix}:"
        return key[len(prefix):] if key.startswith(prefix) else key

    async def get(self, key: str) -> Optional[MemoryEntry[T]]:
        return await self.store.get(self.scoped_key(key))

    async def set(self, key: str, data: T, metadata: Optional[Dict[str, Any]] = None) -> None:
        merged = dict(metadata or {})
        merged.update(self.metadata)
        await self.store.set(self.scoped_key(key), data, merged)

    async def delete(self, key: str) -> bool:
        return await self.store.delete(self.scoped_key(key))

    async def has(self, key: str) -> bool:
        return await self.store.has(self.scoped_key(key))

    async def list(self, prefix: Optional[str] = None) -> List[Tuple[str, MemoryEntry[T]]]:
        entries = await self.store.list(prefix=self.scoped_key(prefix or ""))
        return [(self.unscoped_key(key), entry) for key, entry in entries]

    async def clear(self) -> None:
        """Delete this scope's entries only."""
        for key, _entry in await self.list():
            await self.delete(key)

    async def size(self) -> int:
        return len(await self.list())


class UserScopedVectorStore(UserScopedStore[T], VectorStore[T]):
    """Vector store view whose searches only return this user's entries."""

    def __init__(self, store: VectorStore[T], user_id: str, **kwargs: Any):
        super().__init__(store, user_id, **kwargs)
        self.vector_store = store

    def matches(self, result: VectorSearchResult) -> bool:
        """Whether a hit belongs to this scope, by key prefix or by metadata."""
        if result.key.startswith(f"{self.key_prefix}:"):
            return True
        metadata = result.entry.metadata or {}
        if metadata.get("user_id") != self.user_id:
            return False
        return not self.session_id or metadata.get("session_id") == self.session_id

    async def search(self,
                     query: str,
                     limit: int = 10,
                     threshold: float = 0.0) -> List[VectorSearchResult]:
        # Filtering happens after ranking, so rank the whole backing store
        candidates = await self.vector_store.search(
            query, limit=await self.vector_store.size(), threshold=threshold
        )
        results = [
            replace(result, key=self.unscoped_key(result.key))
            for result in candidates
            if self.matches(result)
        ]
        return results[:limit]
