"""Retrieval content: vector search results rendered into a prompt scope."""

import json
from typing import Callable, List, Optional, Sequence

from loguru import logger

from ..core.tree import Message, Role, Scope, Strategy, create_scope, text_message
from ..memory.vector import VectorSearchResult, VectorStore

NO_RESULTS_TEXT = "Vector search returned no results."

ResultFormatter = Callable[[List[VectorSearchResult]], str]


def format_results(results: List[VectorSearchResult]) -> str:
    """Render results as a numbered list with scores."""
    if not results:
        return NO_RESULTS_TEXT

    blocks = []
    for index, result in enumerate(results, start=1):
        data = result.entry.data
        text = data if isinstance(data, str) else json.dumps(data, indent=2, default=str)
        blocks.append(f"[{index}] (score: {result.score:.3f})\n{text}")
    return "\n\n".join(blocks)


def last_user_query(messages: Sequence[Message]) -> Optional[str]:
    """Text of the last non-empty user message, if any."""
    for message in reversed(messages):
        if message.role is Role.USER:
            text = message.text.strip()
            if text:
                return text
    return None


async def vector_search(store: VectorStore,
                        query: Optional[str] = None,
                        messages: Optional[Sequence[Message]] = None,
                        limit: int = 5,
                        threshold: float = 0.0,
                        formatter: Optional[ResultFormatter] = None,
                        priority: float = 0,
                        role: Role = Role.USER,
                        strategy: Optional[Strategy] = None,
                        id: Optional[str] = None) -> Scope:
    """
    Search ``store`` and wrap the formatted results in a scope.

    Args:
        store: Vector store to query
        query: Query text; derived from the last user message when omitted
        messages: Conversation to derive the query from
        limit: Maximum number of results
        threshold: Minimum normalized similarity score
        formatter: Renders results to text (numbered list by default)
        priority: Priority of the returned scope
        role: Role of the emitted message
        strategy: Optional strategy for the returned scope
        id: Optional scope id

    Returns:
        Scope holding a single message with the formatted results
    """
    if query is None and messages is not None:
        query = last_user_query(messages)
    if not query or not query.strip():
        raise ValueError("vector_search requires a query or messages containing a user message")

    results = await store.search(query.strip(), limit=limit, threshold=threshold)
    logger.debug(f"Vector search for {query[:50]!r} returned {len(results)} results")

    text = (formatter or format_results)(results)
    return create_scope([text_message(role, text)], priority=priority, strategy=strategy, id=id)
