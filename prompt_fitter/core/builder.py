"""Immutable fluent builder for prompt trees."""

from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence, Tuple, Union

from ..services import strategies
from ..services.summarizer import Summarizer, create_summary_strategy
from .cache_pin import hoist_pinned, pin
from .render import RenderResult, render
from .tree import (
    Message,
    Node,
    Part,
    ReasoningPart,
    Role,
    Scope,
    Strategy,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    text_message,
)
from .validator import ToolIOContract, validate_tree

if TYPE_CHECKING:
    from ..memory.key_value import KVStore
    from ..providers.base import ModelProvider

Content = Union["PromptBuilder", Scope, Sequence[Node], Callable[["PromptBuilder"], "PromptBuilder"]]


class PromptBuilder:
    """
    Builds prompt trees one call at a time.

    Every method returns a new builder, so partial chains can be shared and
    extended independently:

        base = PromptBuilder().system("You are helpful.").pin(version="v1")
        prompt = base.omit(lambda b: b.user(notes), priority=2).user(question)
    """

    def __init__(self,
                 children: Sequence[Node] = (),
                 provider: Optional["ModelProvider"] = None):
        self._children: Tuple[Node, ...] = tuple(children)
        self._provider = provider

    @property
    def children(self) -> Tuple[Node, ...]:
        return self._children

    def _with(self, children: Sequence[Node]) -> "PromptBuilder":
        return PromptBuilder(children, self._provider)

    def _add(self, *nodes: Node) -> "PromptBuilder":
        return self._with(self._children + nodes)

    # Messages

    def message(self, role: Union[Role, str], parts: Sequence[Part], id: Optional[str] = None) -> "PromptBuilder":
        return self._add(Message(role=role, children=tuple(parts), id=id))

    def system(self, text: str, id: Optional[str] = None) -> "PromptBuilder":
        return self._add(text_message(Role.SYSTEM, text, id))

    def developer(self, text: str, id: Optional[str] = None) -> "PromptBuilder":
        return self._add(text_message(Role.DEVELOPER, text, id))

    def user(self, text: str, id: Optional[str] = None) -> "PromptBuilder":
        return self._add(text_message(Role.USER, text, id))

    def assistant(self, text: str, reasoning: Optional[str] = None, id: Optional[str] = None) -> "PromptBuilder":
        parts: Tuple[Part, ...] = (TextPart(text),)
        if reasoning:
            parts = (ReasoningPart(reasoning),) + parts
        return self._add(Message(role=Role.ASSISTANT, children=parts, id=id))

    def tool_call(self,
                  tool_call_id: str,
                  tool_name: str,
                  input: Any,
                  text: Optional[str] = None,
                  id: Optional[str] = None) -> "PromptBuilder":
        """Add an assistant message issuing one tool call."""
        parts: Tuple[Part, ...] = (ToolCallPart(tool_call_id, tool_name, input),)
        if text:
            parts = (TextPart(text),) + parts
        return self._add(Message(role=Role.ASSISTANT, children=parts, id=id))

    def tool_result(self, tool_call_id: str, tool_name: str, output: Any, id: Optional[str] = None) -> "PromptBuilder":
        """Add a tool message carrying the result of an earlier tool call."""
        return self._add(Message(role=Role.TOOL, children=(ToolResultPart(tool_call_id, tool_name, output),), id=id))

    # Scopes

    def scope(self,
              content: Content,
              priority: float = 0,
              strategy: Optional[Strategy] = None,
              id: Optional[str] = None,
              provider: Optional["ModelProvider"] = None) -> "PromptBuilder":
        """Add a nested scope holding ``content``."""
        children = _resolve_content(content)
        return self._add(Scope(children=children, priority=priority, strategy=strategy, id=id, provider=provider))

    def truncate(self,
                 content: Content,
                 budget: int,
                 from_: str = "start",
                 priority: float = 0,
                 id: Optional[str] = None) -> "PromptBuilder":
        return self.scope(content, priority=priority, strategy=strategies.truncate(budget, from_), id=id)

    def omit(self, content: Content, priority: float = 0, id: Optional[str] = None) -> "PromptBuilder":
        return self.scope(content, priority=priority, strategy=strategies.omit(), id=id)

    def summary(self,
                content: Content,
                id: str,
                store: "KVStore",
                summarize: Optional[Summarizer] = None,
                priority: float = 0,
                role: Role = Role.SYSTEM) -> "PromptBuilder":
        """Add a scope that is replaced by a stored rolling summary when over budget."""
        strategy = create_summary_strategy(id, store, summarize=summarize, role=role)
        return self.scope(content, priority=priority, strategy=strategy, id=id)

    def extend(self, other: Content) -> "PromptBuilder":
        """Append the content of another builder, tree or node list."""
        return self._add(*_resolve_content(other))

    def with_provider(self, provider: "ModelProvider") -> "PromptBuilder":
        """Attach a provider to the root scope for strategies to inherit."""
        return PromptBuilder(self._children, provider)

    # Pinning and output

    def pin(self,
            version: str,
            id: Optional[str] = None,
            scope_key: Optional[str] = None,
            ttl_seconds: Optional[int] = None,
            priority: float = 0) -> "PromptBuilder":
        """
        Freeze everything added so far as the cache-pinned prefix.

        Raises:
            MalformedTreeError: If the builder is already pinned
        """
        pinned = pin(self._children, version, id=id, scope_key=scope_key,
                     ttl_seconds=ttl_seconds, priority=priority)
        return self._with((pinned,))

    def build(self, tool_io: Optional[ToolIOContract] = None) -> Scope:
        """
        Build and validate the prompt tree.

        The pinned scope, if any, is moved to the front of the tree.

        Raises:
            MalformedTreeError: If the tree is structurally invalid
        """
        tree = hoist_pinned(Scope(children=self._children, provider=self._provider))
        validate_tree(tree, tool_io)
        return tree

    async def render(self, **kwargs: Any) -> RenderResult:
        """Build the tree and pass it to :func:`prompt_fitter.render`."""
        return await render(self.build(), **kwargs)


def _resolve_content(content: Content) -> Tuple[Node, ...]:
    if isinstance(content, PromptBuilder):
        return content.children
    if isinstance(content, Scope):
        return (content,)
    if isinstance(content, Message):
        return (content,)
    if callable(content):
        nested = content(PromptBuilder())
        if not isinstance(nested, PromptBuilder):
            raise TypeError("Scope content functions must return a PromptBuilder")
        return nested.children
    return tuple(content)
