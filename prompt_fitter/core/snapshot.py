"""Snapshots: deterministic projections of a fitted tree for tracing and diffing."""

import hashlib
import json
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple, Union

from .tree import Message, Node, Path, Scope, flatten

if TYPE_CHECKING:
    from ..codecs.base import MessageCodec


@dataclass(frozen=True)
class SnapshotNode:
    """One scope or message of a snapshot with its token cost."""
    node_type: str
    path: Path
    tokens: int
    id: Optional[str] = None
    priority: Optional[float] = None
    role: Optional[str] = None
    cache_id: Optional[str] = None
    content: Optional[str] = None

    @property
    def key(self) -> str:
        """Identity used for diffing: the explicit id, else the tree path."""
        if self.id:
            return f"id:{self.id}"
        return "path:" + ".".join(str(index) for index in self.path)


@dataclass(frozen=True)
class Snapshot:
    """Flattened nodes in tree order, the exact total and a stable hash."""
    nodes: Tuple[SnapshotNode, ...]
    total_tokens: int
    hash: str


@dataclass(frozen=True)
class SnapshotChange:
    key: str
    before: SnapshotNode
    after: SnapshotNode


@dataclass
class SnapshotDiff:
    """Nodes added, removed and changed between two snapshots."""
    added: List[SnapshotNode] = field(default_factory=list)
    removed: List[SnapshotNode] = field(default_factory=list)
    changed: List[SnapshotChange] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)


def create_snapshot(tree: Scope, codec: "MessageCodec") -> Snapshot:
    """
    Project a tree into a snapshot.

    Scope nodes carry the cost of their subtree as if rendered alone, message
    nodes the cost of the message alone. ``total_tokens`` is the codec's count
    of the whole layout, boundaries included.

    Args:
        tree: Tree to project, usually ``FitResult.tree``
        codec: Codec used for token counting

    Returns:
        The snapshot
    """
    nodes: List[SnapshotNode] = []
    _collect(tree, (), codec, nodes)
    return Snapshot(
        nodes=tuple(nodes),
        total_tokens=codec.count_layout_tokens(flatten(tree)),
        hash=_hash_nodes(nodes),
    )


def diff_snapshots(before: Snapshot, after: Snapshot) -> SnapshotDiff:
    """Compare two snapshots node by node, keyed by id or path."""
    before_nodes = _by_key(before.nodes)
    after_nodes = _by_key(after.nodes)

    diff = SnapshotDiff()
    for key, node in after_nodes.items():
        previous = before_nodes.get(key)
        if previous is None:
            diff.added.append(node)
        elif previous != node:
            diff.changed.append(SnapshotChange(key=key, before=previous, after=node))
    for key, node in before_nodes.items():
        if key not in after_nodes:
            diff.removed.append(node)
    return diff


def _collect(node: Node, path: Path, codec: "MessageCodec", nodes: List[SnapshotNode]) -> None:
    if isinstance(node, Message):
        nodes.append(SnapshotNode(
            node_type="message",
            path=path,
            tokens=codec.count_message_tokens(node),
            id=node.id,
            role=node.role.value,
            content=_message_content(node),
        ))
        return

    nodes.append(SnapshotNode(
        node_type="scope",
        path=path,
        tokens=codec.count_layout_tokens(flatten(node)),
        id=node.id,
        priority=node.priority,
        cache_id=node.cache.id if node.cache else None,
    ))
    for index, child in enumerate(node.children):
        _collect(child, path + (index,), codec, nodes)


def _message_content(message: Message) -> str:
    parts = [dict(asdict(part), type=part.type) for part in message.children]
    return json.dumps(parts, sort_keys=True, separators=(",", ":"), default=str)


def _hash_nodes(nodes: List[SnapshotNode]) -> str:
    payload = [asdict(node) for node in nodes]
    seed = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(seed.encode("utf-8")).hexdigest()


def _by_key(nodes: Union[List[SnapshotNode], Tuple[SnapshotNode, ...]]) -> Dict[str, SnapshotNode]:
    return {node.key: node for node in nodes}
