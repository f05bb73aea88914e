"""Codec contract between prompt layouts and provider-native payloads."""

from abc import ABC, abstractmethod
from typing import Generic, List, Optional, Sequence, TypeVar

from ..core.tree import Message
from ..core.validator import ToolIOContract
from ..exceptions import CodecContractViolation

TRendered = TypeVar("TRendered")


class MessageCodec(ABC, Generic[TRendered]):
    """Bidirectional mapping between a layout and a provider payload.

    Token accounting must be exact: for every layout,
    ``count_layout_tokens(layout) == count_tokens(render(layout))``. Codecs whose
    rendered form joins or merges adjacent messages account for that in
    ``count_boundary_tokens``.
    """

    #: Shapes of tool-call inputs and tool-result outputs this codec can render.
    tool_io: ToolIOContract = ToolIOContract()

    @abstractmethod
    def render(self, layout: Sequence[Message]) -> TRendered:
        """Render a layout into the provider-native payload."""
        pass

    @abstractmethod
    def parse(self, rendered: TRendered) -> List[Message]:
        """Parse a provider-native payload back into a layout."""
        pass

    @abstractmethod
    def count_message_tokens(self, message: Message) -> int:
        """Token cost of one message rendered in isolation."""
        pass

    def count_boundary_tokens(self, prev: Optional[Message], next: Message) -> int:
        """Extra tokens introduced by joining ``prev`` and ``next``.

        ``prev`` is ``None`` for the first message of a layout.
        """
        return 0

    @abstractmethod
    def count_tokens(self, rendered: TRendered) -> int:
        """Ground-truth token count of a rendered payload."""
        pass

    def count_layout_tokens(self, layout: Sequence[Message], prev: Optional[Message] = None) -> int:
        """Incrementally count a layout, optionally continuing after ``prev``."""
        total = 0
        for message in layout:
            total += self.count_boundary_tokens(prev, message)
            total += self.count_message_tokens(message)
            prev = message
        return total


def verify_token_accounting(codec: MessageCodec, layout: Sequence[Message]) -> int:
    """
    Check that incremental accounting matches the rendered payload.

    Args:
        codec: Codec under test
        layout: Layout to render and count

    Returns:
        The agreed token count

    Raises:
        CodecContractViolation: If the two counts differ
    """
    incremental = codec.count_layout_tokens(layout)
    rendered = codec.count_tokens(codec.render(layout))
    if incremental != rendered:
        raise CodecContractViolation(incremental, rendered)
    return rendered
