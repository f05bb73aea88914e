"""Cache pinning: a versioned prompt prefix that is never reduced."""

import hashlib
import json
from dataclasses import asdict
from typing import Any, Optional, Sequence, Tuple

from ..exceptions import MalformedTreeError
from .tree import CacheHint, Message, Node, Path, Scope, flatten, iter_scopes, replace_at


def derive_cache_id(id: str, version: str, scope_key: Optional[str] = None) -> str:
    """Stable cache identifier for an ``(id, version, scope_key)`` triple."""
    seed = json.dumps([id, version, scope_key], separators=(",", ":"))
    return hashlib.sha256(seed.encode("utf-8")).hexdigest()[:32]


def cache_id_for(hint: CacheHint) -> str:
    return derive_cache_id(hint.id, hint.version, hint.scope_key)


def content_id(nodes: Sequence[Node]) -> str:
    """Content hash of the messages under ``nodes``; edits change the id."""
    layout = []
    for node in nodes:
        layout.extend(flatten(node))
    payload = [_message_seed(message) for message in layout]
    seed = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(seed.encode("utf-8")).hexdigest()[:16]


def _message_seed(message: Message) -> Any:
    return {
        "role": message.role.value,
        "parts": [dict(asdict(part), type=part.type) for part in message.children],
    }


def pin(nodes: Sequence[Node],
        version: str,
        id: Optional[str] = None,
        scope_key: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        priority: float = 0) -> Scope:
    """
    Freeze ``nodes`` as the pinned prefix of a prompt.

    Args:
        nodes: Current prompt content to freeze
        version: Caller-chosen version; changing it changes the cache id
        id: Prefix name, derived from the content when omitted
        scope_key: Optional extra key (e.g. tenant) folded into the cache id
        ttl_seconds: Passed through to the provider cache, not enforced locally
        priority: Scope priority (the pinned scope is never reduced regardless)

    Returns:
        A strategy-less scope carrying the cache hint
    """
    for node in nodes:
        if isinstance(node, Scope) and find_pinned(node) is not None:
            raise MalformedTreeError("Prompt is already pinned")

    hint = CacheHint(
        id=id if id is not None else content_id(nodes),
        version=version,
        scope_key=scope_key,
        ttl_seconds=ttl_seconds,
    )
    return Scope(children=tuple(nodes), priority=priority, cache=hint)


def find_pinned(tree: Scope) -> Optional[Tuple[Scope, Path]]:
    """Locate the pinned scope of a tree, if any."""
    for scope, path, _depth in iter_scopes(tree):
        if scope.cache is not None:
            return scope, path
    return None


def split_pinned(tree: Scope) -> Tuple[Optional[Scope], Optional[Scope]]:
    """Separate the pinned scope from the rest of the tree.

    Returns ``(pinned, remainder)``; the remainder is the tree with the pinned
    scope removed (``None`` only if the pinned scope was the root).
    """
    found = find_pinned(tree)
    if found is None:
        return None, tree
    pinned, path = found
    return pinned, replace_at(tree, path, None)


def hoist_pinned(tree: Scope) -> Scope:
    """Move the pinned scope to the first child of the root."""
    found = find_pinned(tree)
    if found is None or found[1] in ((), (0,)):
        return tree
    pinned, path = found
    remainder = replace_at(tree, path, None)
    return remainder.with_children((pinned,) + remainder.children)
