"""Vector memory interface and in-memory implementation."""

import json
import math
from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar, Union

from ..utils.awaitables import maybe_await
from .key_value import KVStore, MemoryEntry, now_ms

T = TypeVar("T")

EmbedFunction = Callable[[str], Union[Sequence[float], Awaitable[Sequence[float]]]]


@dataclass
class VectorSearchResult:
    """A search hit; ``score`` is normalized to [0, 1], higher is closer."""
    key: str
    score: float
    entry: MemoryEntry


class VectorStore(KVStore[T]):
    """Key-value memory that also supports semantic search."""

    @abstractmethod
    async def search(self,
                     query: str,
                     limit: int = 10,
                     threshold: float = 0.0) -> List[VectorSearchResult]:
        """
        Search entries by similarity to ``query``.

        Args:
            query: Text to search for
            limit: Maximum number of results
            threshold: Minimum normalized score for a result to be returned

        Returns:
            Results sorted by descending score
        """
        pass


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0 when either vector is all zeros."""
    if len(a) != len(b):
        raise ValueError(f"Vector dimension mismatch: {len(a)} vs {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    magnitude = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if magnitude == 0:
        return 0.0
    return dot / magnitude


class InMemoryVectorStore(VectorStore[T]):
    """
    Brute-force cosine-similarity store for development and tests.

    Embeddings come from the caller-supplied ``embed`` function; non-string data
    is embedded as its JSON encoding.
    """

    def __init__(self, embed: EmbedFunction):
        self.embed = embed
        self._entries: Dict[str, Tuple[MemoryEntry[T], Sequence[float]]] = {}

    async def get(self, key: str) -> Optional[MemoryEntry[T]]:
        stored = self._entries.get(key)
        return stored[0] if stored else None

    async def set(self, key: str, data: T, metadata: Optional[Dict[str, Any]] = None) -> None:
        text = data if isinstance(data, str) else json.dumps(data, default=str)
        vector = await maybe_await(self.embed(text))
        now = now_ms()
        existing = self._entries.get(key)
        entry = MemoryEntry(
            data=data,
            created_at=existing[0].created_at if existing else now,
            updated_at=now,
            metadata=metadata,
        )
        self._entries[key] = (entry, vector)

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def has(self, key: str) -> bool:
        return key in self._entries

    async def list(self, prefix: Optional[str] = None) -> List[Tuple[str, MemoryEntry[T]]]:
        return [
            (key, self._entries[key][0])
            for key in sorted(self._entries)
            if prefix is None or key.startswith(prefix)
        ]

    async def search(self,
                     query: str,
                     limit: int = 10,
                     threshold: float = 0.0) -> List[VectorSearchResult]:
        if not self._entries:
            return []

        query_vector = await maybe_await(self.embed(query))
        results = []
        for key, (entry, vector) in self._entries.items():
            # Map cosine similarity from [-1, 1] onto [0, 1]
            score = (cosine_similarity(query_vector, vector) + 1) / 2
            if score >= threshold:
                results.append(VectorSearchResult(key=key, score=score, entry=entry))

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    async def size(self) -> int:
        return len(self._entries)

    async def clear(self) -> None:
        self._entries.clear()
