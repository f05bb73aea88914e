"""Plain-text codec: one string, messages joined by a separator."""

import re
from typing import List, Optional, Sequence

from ..core.tokenizer_service import TokenizerService
from ..core.tree import (
    Message,
    ReasoningPart,
    Role,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)
from ..core.validator import ToolIOContract
from .base import MessageCodec

ROLE_NAMES = "system|developer|user|assistant|tool"
ROLE_PREFIX_RE = re.compile(rf"^({ROLE_NAMES}): ")
TOOL_RESULT_RE = re.compile(r"^\[tool-result:([^\]]*)\](.*)$", re.DOTALL)


class PlainTextCodec(MessageCodec[str]):
    """Renders a layout as plain text.

    Each message becomes ``"<role>: <content>"`` (or just the content) and
    messages are joined with ``join_messages_with``; the separator cost is
    charged as a boundary token. Accounting is only exact when token counts add
    up across the separator, so the tokenizer must be additive (the ``simple``
    backend) and the separator must not glue word characters together.

    With role prefixes, ``parse`` inverts ``render`` for text-only layouts
    as long as no message text contains the separator followed by a role prefix.
    """

    tool_io = ToolIOContract(call_input=str, result_output=str)

    def __init__(self,
                 tokenizer: Optional[TokenizerService] = None,
                 join_messages_with: str = "\n\n",
                 include_role_prefix: bool = True):
        """
        Initialize plain-text codec.

        Args:
            tokenizer: TokenizerService instance for token counting, defaults to
                the ``simple`` backend
            join_messages_with: Separator placed between rendered messages
            include_role_prefix: Whether to prefix each message with its role

        Raises:
            ValueError: If the tokenizer or separator would make token
                accounting inexact
        """
        tokenizer = tokenizer or TokenizerService(backend="simple")
        if not tokenizer.additive:
            raise ValueError(
                f"PlainTextCodec needs an additive tokenizer, got backend '{tokenizer.backend}'. "
                "BPE tokenizers merge tokens across the separator; use ChatMessagesCodec instead."
            )
        if not join_messages_with or _is_word_char(join_messages_with[0]) or _is_word_char(join_messages_with[-1]):
            raise ValueError(
                f"Separator {join_messages_with!r} must be non-empty and start and end with "
                "whitespace or punctuation"
            )
        self.tokenizer = tokenizer
        self.join_messages_with = join_messages_with
        self.include_role_prefix = include_role_prefix
        self.separator_tokens = self.tokenizer.count_tokens(join_messages_with)
        self._boundary_re = re.compile(re.escape(join_messages_with) + rf"(?=(?:{ROLE_NAMES}): )")

    def render(self, layout: Sequence[Message]) -> str:
        return self.join_messages_with.join(self.render_message(m) for m in layout)

    def render_message(self, message: Message) -> str:
        """Render one message without separators."""
        content = "".join(self._render_part(part) for part in message.children)
        if self.include_role_prefix:
            return f"{message.role.value}: {content}"
        return content

    @staticmethod
    def _render_part(part) -> str:
        if isinstance(part, (TextPart, ReasoningPart)):
            return part.text
        if isinstance(part, ToolCallPart):
            return f"[tool-call:{part.tool_name}]{part.input}"
        if isinstance(part, ToolResultPart):
            return f"[tool-result:{part.tool_name}]{part.output}"
        raise TypeError(f"Unsupported part type: {type(part).__name__}")

    def parse(self, rendered: str) -> List[Message]:
        """
        Parse rendered text back into messages.

        A new message starts wherever the separator is followed by a role
        prefix, so multi-paragraph text survives. Without role prefixes every
        segment is read as a user message.
        """
        if not rendered:
            return []

        if not self.include_role_prefix:
            return [Message(Role.USER, (TextPart(segment),)) for segment in rendered.split(self.join_messages_with)]

        messages = []
        for segment in self._boundary_re.split(rendered):
            match = ROLE_PREFIX_RE.match(segment)
            if match is None:
                # Leading text with no role, e.g. a bare completion
                messages.append(Message(Role.ASSISTANT, (TextPart(segment),)))
            else:
                messages.append(self._parse_message(Role(match.group(1)), segment[match.end():]))
        return messages

    @staticmethod
    def _parse_message(role: Role, text: str) -> Message:
        if role is Role.TOOL:
            match = TOOL_RESULT_RE.match(text)
            tool_name, output = match.groups() if match else ("tool", text)
            return Message(role, (ToolResultPart(tool_name, tool_name, output),))
        return Message(role, (TextPart(text),))

    def count_message_tokens(self, message: Message) -> int:
        return self.tokenizer.count_tokens(self.render_message(message))

    def count_boundary_tokens(self, prev: Optional[Message], next: Message) -> int:
        if prev is None:
            return 0
        return self.separator_tokens

    def count_tokens(self, rendered: str) -> int:
        return self.tokenizer.count_tokens(rendered)


def _is_word_char(char: str) -> bool:
    return re.match(r"\w", char) is not None
