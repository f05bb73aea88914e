"""Prompt tree model: parts, messages, scopes and the flattened layout."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    ClassVar,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from ..exceptions import MalformedTreeError

if TYPE_CHECKING:
    from ..providers.base import ModelProvider


class Role(str, Enum):
    """Message roles understood by every codec."""
    SYSTEM = "system"
    DEVELOPER = "developer"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class TextPart:
    """Plain text content."""
    text: str
    type: ClassVar[str] = "text"


@dataclass(frozen=True)
class ReasoningPart:
    """A model "thinking" trace."""
    text: str
    type: ClassVar[str] = "reasoning"


@dataclass(frozen=True)
class ToolCallPart:
    """A tool invocation issued by the assistant."""
    tool_call_id: str
    tool_name: str
    input: Any
    type: ClassVar[str] = "tool-call"


@dataclass(frozen=True)
class ToolResultPart:
    """The output of a tool invocation."""
    tool_call_id: str
    tool_name: str
    output: Any
    type: ClassVar[str] = "tool-result"


Part = Union[TextPart, ReasoningPart, ToolCallPart, ToolResultPart]
PART_TYPES = (TextPart, ReasoningPart, ToolCallPart, ToolResultPart)


@dataclass(frozen=True)
class Message:
    """A single message: a role plus an ordered tuple of parts."""
    role: Role
    children: Tuple[Part, ...] = ()
    id: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.role, Role):
            try:
                object.__setattr__(self, "role", Role(self.role))
            except ValueError:
                raise MalformedTreeError(f"Unknown message role: {self.role!r}") from None
        if not isinstance(self.children, tuple):
            object.__setattr__(self, "children", tuple(self.children))

    @property
    def text(self) -> str:
        """Concatenated text of all text parts."""
        return "".join(p.text for p in self.children if isinstance(p, TextPart))

    @property
    def reasoning(self) -> str:
        """Concatenated text of all reasoning parts."""
        return "".join(p.text for p in self.children if isinstance(p, ReasoningPart))

    @property
    def tool_calls(self) -> List[ToolCallPart]:
        return [p for p in self.children if isinstance(p, ToolCallPart)]

    @property
    def tool_results(self) -> List[ToolResultPart]:
        return [p for p in self.children if isinstance(p, ToolResultPart)]


@dataclass(frozen=True)
class CacheHint:
    """Marks a scope as a cache-stable, never-reduced prompt prefix."""
    id: str
    version: str
    scope_key: Optional[str] = None
    ttl_seconds: Optional[int] = None
    mode: str = "pin"


@dataclass(frozen=True)
class Scope:
    """A priority-weighted container of messages and nested scopes.

    Higher ``priority`` means the scope is reduced earlier. A scope without a
    ``strategy`` is never reduced and always counts towards the token total.
    """
    children: Tuple["Node", ...] = ()
    priority: float = 0
    strategy: Optional["Strategy"] = None
    id: Optional[str] = None
    cache: Optional[CacheHint] = None
    provider: Optional["ModelProvider"] = None

    def __post_init__(self):
        if not isinstance(self.children, tuple):
            object.__setattr__(self, "children", tuple(self.children))

    @property
    def reducible(self) -> bool:
        return self.strategy is not None and self.cache is None

    def with_children(self, children: Sequence["Node"]) -> "Scope":
        """Return a copy of this scope holding ``children``."""
        return replace(self, children=tuple(children))


Node = Union[Message, Scope]
PromptTree = Scope
PromptLayout = List[Message]
Path = Tuple[int, ...]


@dataclass(frozen=True)
class StrategyContext:
    """Collaborators made available to strategies."""
    provider: Optional["ModelProvider"] = None


@dataclass(frozen=True)
class StrategyInput:
    """Arguments passed to a strategy when its scope must shrink.

    Attributes:
        target: The scope to reduce, in its current (possibly already reduced) state
        total_tokens: Token total of the whole tree at this iteration
        iteration: 1-based fit loop iteration
        context: Provider and other collaborators inherited from ancestor scopes
    """
    target: Scope
    total_tokens: int
    iteration: int = 1
    context: StrategyContext = field(default_factory=StrategyContext)


StrategyResult = Optional[Scope]
Strategy = Callable[[StrategyInput], Union[StrategyResult, Awaitable[StrategyResult]]]


def text_message(role: Union[Role, str], text: str, id: Optional[str] = None) -> Message:
    """Create a message holding a single text part."""
    return Message(role=role, children=(TextPart(text),), id=id)


def create_scope(children: Sequence[Node],
                 priority: float = 0,
                 strategy: Optional[Strategy] = None,
                 id: Optional[str] = None,
                 provider: Optional["ModelProvider"] = None) -> Scope:
    """Create a scope node."""
    return Scope(children=tuple(children), priority=priority, strategy=strategy, id=id, provider=provider)


def flatten(node: Node) -> PromptLayout:
    """Flatten a tree into its ordered message layout, unwrapping scopes."""
    if isinstance(node, Message):
        return [node]
    layout: PromptLayout = []
    for child in node.children:
        layout.extend(flatten(child))
    return layout


def iter_scopes(root: Scope, path: Path = (), depth: int = 0) -> Iterator[Tuple[Scope, Path, int]]:
    """Yield ``(scope, path, depth)`` for every scope in pre-order (tree order)."""
    yield root, path, depth
    for index, child in enumerate(root.children):
        if isinstance(child, Scope):
            yield from iter_scopes(child, path + (index,), depth + 1)


def node_at(root: Scope, path: Path) -> Node:
    """Return the node addressed by ``path`` (child indices from the root)."""
    node: Node = root
    for index in path:
        if not isinstance(node, Scope):
            raise MalformedTreeError(f"Path {path} descends into a message")
        node = node.children[index]
    return node


def replace_at(root: Scope, path: Path, replacement: Optional[Node]) -> Optional[Scope]:
    """Return a new tree with the node at ``path`` replaced.

    Untouched subtrees are shared with the input. A ``None`` replacement removes
    the node; removing the root yields ``None``.
    """
    if not path:
        if replacement is not None and not isinstance(replacement, Scope):
            raise MalformedTreeError("The root of a prompt tree must be a Scope")
        return replacement

    head, rest = path[0], path[1:]
    children = list(root.children)
    child = children[head]
    if rest:
        if not isinstance(child, Scope):
            raise MalformedTreeError(f"Path {path} descends into a message")
        new_child: Optional[Node] = replace_at(child, rest, replacement)
    else:
        new_child = replacement

    if new_child is None:
        del children[head]
    else:
        children[head] = new_child
    return root.with_children(children)
