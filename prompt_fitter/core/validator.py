"""Build-time validation of prompt trees.

Validation runs once when a tree is built, never inside the fit loop, so that
malformed trees (a caller bug) fail immediately and separately from
over-budget trees (an expected, render-time condition).
"""

import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional, Sequence, Set

from pydantic import TypeAdapter, ValidationError

from ..exceptions import MalformedTreeError, MessageBoundaryError
from .tree import (
    PART_TYPES,
    Message,
    ReasoningPart,
    Role,
    Scope,
    ToolCallPart,
    ToolResultPart,
    flatten,
)


@lru_cache(maxsize=None)
def _adapter(tp: Any) -> TypeAdapter:
    return TypeAdapter(tp)


@dataclass(frozen=True)
class ToolIOContract:
    """Shapes a codec accepts for tool-call inputs and tool-result outputs.

    Any type pydantic can validate works, e.g. ``str`` for JSON-encoded
    arguments or a ``BaseModel`` subclass for structured payloads.
    """
    call_input: Any = Any
    result_output: Any = Any

    def validate_layout(self, layout: Sequence[Message]) -> None:
        """Raise ``MessageBoundaryError`` for any tool part of the wrong shape."""
        for index, message in enumerate(layout):
            for part in message.children:
                if isinstance(part, ToolCallPart):
                    self._check(self.call_input, part.input, f"tool-call {part.tool_call_id!r} input", index)
                elif isinstance(part, ToolResultPart):
                    self._check(self.result_output, part.output, f"tool-result {part.tool_call_id!r} output", index)

    @staticmethod
    def _check(tp: Any, value: Any, label: str, index: int) -> None:
        try:
            _adapter(tp).validate_python(value, strict=True)
        except ValidationError as e:
            raise MessageBoundaryError(
                f"{label} does not match the tool I/O contract: {e.errors()[0]['msg']}",
                path=f"layout[{index}]",
            ) from e


def validate_tree(tree: Any, tool_io: Optional[ToolIOContract] = None) -> None:
    """
    Validate the structure of a prompt tree.

    Args:
        tree: Root scope of the prompt tree
        tool_io: Optional tool I/O contract to check tool parts against

    Raises:
        MalformedTreeError: If the tree is malformed, with
            ``MessageBoundaryError`` for content on the wrong side of a
            message boundary
    """
    if not isinstance(tree, Scope):
        raise MalformedTreeError(f"A prompt tree must be rooted at a Scope, got {type(tree).__name__}")

    state = _WalkState()
    _validate_scope(tree, "root", state)

    layout = flatten(tree)
    _validate_tool_pairing(layout)
    if tool_io is not None:
        tool_io.validate_layout(layout)


class _WalkState:
    def __init__(self):
        self.ids: Set[str] = set()
        self.pins = 0


def _validate_id(node_id: Any, path: str, state: _WalkState) -> None:
    if node_id is None:
        return
    if not isinstance(node_id, str) or not node_id.strip():
        raise MalformedTreeError(f"Node ids must be non-empty strings (at {path})")
    if node_id in state.ids:
        raise MalformedTreeError(f"Node ids must be unique. Duplicate id: {node_id!r}")
    state.ids.add(node_id)


def _validate_scope(scope: Scope, path: str, state: _WalkState) -> None:
    priority = scope.priority
    if isinstance(priority, bool) or not isinstance(priority, (int, float)) or not math.isfinite(priority):
        raise MalformedTreeError(f"Scope priority must be a finite number (at {path})")
    if scope.strategy is not None and not callable(scope.strategy):
        raise MalformedTreeError(f"Scope strategy must be callable (at {path})")
    _validate_id(scope.id, path, state)

    if scope.cache is not None:
        state.pins += 1
        if state.pins > 1:
            raise MalformedTreeError("Prompt is already pinned")
        if scope.cache.mode != "pin":
            raise MalformedTreeError(f"Unsupported cache mode {scope.cache.mode!r} (at {path})")

    for index, child in enumerate(scope.children):
        child_path = f"{path}.children[{index}]"
        if isinstance(child, Scope):
            _validate_scope(child, child_path, state)
        elif isinstance(child, Message):
            _validate_message(child, child_path, state)
        elif isinstance(child, (str, int, float)):
            raise MessageBoundaryError("Text and number content must be placed inside a Message", child_path)
        elif isinstance(child, PART_TYPES):
            raise MessageBoundaryError(f"A {child.type} part must be placed inside a Message", child_path)
        else:
            raise MalformedTreeError(f"Unsupported node type {type(child).__name__} (at {child_path})")


def _validate_message(message: Message, path: str, state: _WalkState) -> None:
    _validate_id(message.id, path, state)

    for index, part in enumerate(message.children):
        part_path = f"{path}.children[{index}]"
        if isinstance(part, (Scope, Message)):
            raise MessageBoundaryError(
                f"A {type(part).__name__} cannot be used where a Part is expected", part_path)
        if not isinstance(part, PART_TYPES):
            raise MessageBoundaryError(
                f"Message children must be parts, got {type(part).__name__}", part_path)

        if message.role is Role.TOOL:
            if not isinstance(part, ToolResultPart):
                raise MessageBoundaryError(f"Tool messages may only contain tool-result parts, got {part.type}", part_path)
        elif isinstance(part, ToolResultPart):
            raise MessageBoundaryError("Tool-result parts must be placed in a tool message", part_path)
        elif isinstance(part, (ToolCallPart, ReasoningPart)) and message.role is not Role.ASSISTANT:
            raise MessageBoundaryError(f"{part.type} parts are only allowed in assistant messages", part_path)

    if message.role is Role.TOOL and not message.children:
        raise MessageBoundaryError("Tool messages must contain at least one tool-result part", path)


def _validate_tool_pairing(layout: Sequence[Message]) -> None:
    """Tool results must answer a tool call issued earlier in the same layout."""
    issued: Set[str] = set()
    for index, message in enumerate(layout):
        for call in message.tool_calls:
            issued.add(call.tool_call_id)
        for result in message.tool_results:
            if result.tool_call_id not in issued:
                raise MessageBoundaryError(
                    f"Tool result {result.tool_call_id!r} has no matching tool call in an earlier assistant message",
                    f"layout[{index}]",
                )
