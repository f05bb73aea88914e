"""
Chat codec for converting layouts to chat-completions style message dicts.
"""

from typing import Any, Dict, List, Optional, Sequence

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

ChatMessage = Dict[str, Any]


class ChatMessagesCodec(MessageCodec[List[ChatMessage]]):
    """Renders a layout as a list of ``{"role": ..., "content": ...}`` dicts.

    Every rendered message costs ``message_overhead`` tokens on top of its
    fields, and the reply priming that a chat request carries once is charged on
    the boundary before the first message. Fields are counted independently, so
    accounting is exact for any tokenizer backend.
    """

    tool_io = ToolIOContract(call_input=str, result_output=str)

    def __init__(self,
                 tokenizer: Optional[TokenizerService] = None,
                 message_overhead: int = 3,
                 reply_priming: int = 3):
        """
        Initialize chat codec.

        Args:
            tokenizer: TokenizerService instance for token counting
            message_overhead: Formatting tokens added per rendered message
            reply_priming: Tokens added once per non-empty request
        """
        self.tokenizer = tokenizer or TokenizerService()
        self.message_overhead = message_overhead
        self.reply_priming = reply_priming

    def render(self, layout: Sequence[Message]) -> List[ChatMessage]:
        rendered: List[ChatMessage] = []
        for message in layout:
            rendered.extend(self.to_chat_messages(message))
        return rendered

    def to_chat_messages(self, message: Message) -> List[ChatMessage]:
        """Convert one IR message into one or more chat messages."""
        if message.role is Role.TOOL:
            return [
                {
                    "role": "tool",
                    "tool_call_id": part.tool_call_id,
                    "name": part.tool_name,
                    "content": part.output,
                }
                for part in message.tool_results
            ]

        if message.role is Role.ASSISTANT:
            has_text = any(isinstance(part, TextPart) for part in message.children)
            result: ChatMessage = {"role": "assistant", "content": message.text if has_text else None}
            if message.reasoning:
                result["reasoning_content"] = message.reasoning
            tool_calls = message.tool_calls
            if tool_calls:
                result["tool_calls"] = [
                    {
                        "id": call.tool_call_id,
                        "type": "function",
                        "function": {"name": call.tool_name, "arguments": call.input},
                    }
                    for call in tool_calls
                ]
            return [result]

        return [{"role": message.role.value, "content": message.text}]

    def parse(self, rendered: List[ChatMessage]) -> List[Message]:
        return [self.from_chat_message(item) for item in rendered]

    def from_chat_message(self, item: ChatMessage) -> Message:
        """Convert one chat message back into an IR message."""
        role = Role(item["role"])
        if role is Role.TOOL:
            part = ToolResultPart(
                tool_call_id=item.get("tool_call_id", ""),
                tool_name=item.get("name", ""),
                output=item.get("content", ""),
            )
            return Message(role, (part,))

        parts = []
        if item.get("reasoning_content"):
            parts.append(ReasoningPart(item["reasoning_content"]))
        content = item.get("content")
        if content is not None or role is not Role.ASSISTANT:
            parts.append(TextPart(_content_text(content)))
        for call in item.get("tool_calls") or []:
            function = call.get("function", {})
            parts.append(ToolCallPart(
                tool_call_id=call.get("id", ""),
                tool_name=function.get("name", ""),
                input=function.get("arguments", ""),
            ))
        return Message(role, tuple(parts))

    def count_message_tokens(self, message: Message) -> int:
        return sum(self._count_chat_message(item) for item in self.to_chat_messages(message))

    def count_boundary_tokens(self, prev: Optional[Message], next: Message) -> int:
        if prev is None:
            return self.reply_priming
        return 0

    def count_tokens(self, rendered: List[ChatMessage]) -> int:
        if not rendered:
            return 0
        return self.reply_priming + sum(self._count_chat_message(item) for item in rendered)

    def _count_chat_message(self, item: ChatMessage) -> int:
        tokens = self.message_overhead
        tokens += self.tokenizer.count_tokens(_content_text(item.get("content")))
        if item.get("reasoning_content"):
            tokens += self.tokenizer.count_tokens(item["reasoning_content"])
        for call in item.get("tool_calls") or []:
            function = call.get("function", {})
            tokens += self.tokenizer.count_tokens(function.get("name", ""))
            tokens += self.tokenizer.count_tokens(str(function.get("arguments", "")))
        return tokens


def _content_text(content: Any) -> str:
    """Extract text from string or multi-part content."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            block.get("text", "")
            for block in content
            if isinstance(block, dict) and block.get("type") == "text"
        )
    return str(content)
