"""Key-value memory interface and in-memory implementation."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar

T = TypeVar("T")


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class MemoryEntry(Generic[T]):
    """A stored value with timestamps (epoch ms) and optional metadata."""
    data: T
    created_at: int
    updated_at: int
    metadata: Optional[Dict[str, Any]] = None


class KVStore(ABC, Generic[T]):
    """
    Key-value memory for summaries, conversation state and other prompt data.

    Consistency under concurrent writers is whatever the backing store
    provides; nothing is locked or cached on top of it.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[MemoryEntry[T]]:
        """Retrieve an entry, or None if the key is absent."""
        pass

    @abstractmethod
    async def set(self, key: str, data: T, metadata: Optional[Dict[str, Any]] = None) -> None:
        """Store or replace an entry."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete an entry; returns True if it existed."""
        pass

    async def has(self, key: str) -> bool:
        return await self.get(key) is not None

    @abstractmethod
    async def list(self, prefix: Optional[str] = None) -> List[Tuple[str, MemoryEntry[T]]]:
        """List ``(key, entry)`` pairs sorted by key, optionally filtered by prefix."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove every entry."""
        pass

    @abstractmethod
    async def size(self) -> int:
        """Number of stored entries."""
        pass


class InMemoryStore(KVStore[T]):
    """
    Dict-backed store for development, tests and short-lived processes.

    Entries keep their original ``created_at`` when overwritten.
    """

    def __init__(self):
        self._entries: Dict[str, MemoryEntry[T]] = {}

    async def get(self, key: str) -> Optional[MemoryEntry[T]]:
        return self._entries.get(key)

    async def set(self, key: str, data: T, metadata: Optional[Dict[str, Any]] = None) -> None:
        now = now_ms()
        existing = self._entries.get(key)
        self._entries[key] = MemoryEntry(
            data=data,
            created_at=existing.created_at if existing else now,
            updated_at=now,
            metadata=metadata,
        )

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def has(self, key: str) -> bool:
        return key in self._entries

    async def list(self, prefix: Optional[str] = None) -> List[Tuple[str, MemoryEntry[T]]]:
        """List entries sorted by key, optionally filtered by prefix."""
        return [
            (key, self._entries[key])
            for key in sorted(self._entries)
            if prefix is None or key.startswith(prefix)
        ]

    async def clear(self) -> None:
        self._entries.clear()

    async def size(self) -> int:
        return len(self._entries)
