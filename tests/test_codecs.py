"""Tests for the reference codecs."""

import pytest
from prompt_fitter.codecs.base import verify_token_accounting
from prompt_fitter.codecs.plaintext import PlainTextCodec
from prompt_fitter.core.tokenizer_service import SimpleTokenizer
from prompt_fitter.core.tree import (
    Message,
    ReasoningPart,
    Role,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    text_message,
)
from prompt_fitter.exceptions import CodecContractViolation


TEXT_LAYOUT = [
    text_message("system", "You are helpful."),
    text_message("user", "Hello!"),
    text_message("assistant", "Hi, how can I help?"),
    text_message("developer", "Answer briefly."),
]


class MergingTokenizer(SimpleTokenizer):
    """Word tokenizer that claims to merge across whitespace like BPE does."""

    additive = False


EDGE_TEXT_LAYOUTS = [
    [text_message("user", "  indented")],
    [text_message("user", "trailing  ")],
    [text_message("user", "first paragraph\n\nsecond paragraph"), text_message("assistant", "ok")],
    [text_message("system", "ends with a break\n\n"), text_message("user", "\n\nstarts with one")],
    [text_message("assistant", ""), text_message("user", "")],
    [text_message("user", "a\n\n\n\nb")],
    [text_message("user", "odd break\n"), text_message("user", "next")],
]

TOOL_LAYOUT = [
    text_message("user", "Weather in Paris?"),
    Message(Role.ASSISTANT, (
        ReasoningPart("Need the weather tool."),
        TextPart("Checking."),
        ToolCallPart("call_1", "weather", '{"city": "Paris"}'),
    )),
    Message(Role.TOOL, (
        ToolResultPart("call_1", "weather", "sunny, 24C"),
    )),
]


class TestPlainTextCodec:
    """Test cases for PlainTextCodec."""

    def test_render(self, codec):
        rendered = codec.render(TEXT_LAYOUT[:2])
        assert rendered == "system: You are helpful.\n\nuser: Hello!"

    def test_render_without_role_prefix(self, tokenizer):
        codec = PlainTextCodec(tokenizer, include_role_prefix=False)
        assert codec.render(TEXT_LAYOUT[:2]) == "You are helpful.\n\nHello!"

    def test_render_tool_parts(self, codec):
        assert codec.render_message(TOOL_LAYOUT[2]) == "tool: [tool-result:weather]sunny, 24C"

    def test_parse_round_trip(self, codec):
        assert codec.parse(codec.render(TEXT_LAYOUT)) == TEXT_LAYOUT

    @pytest.mark.parametrize("layout", EDGE_TEXT_LAYOUTS)
    def test_parse_round_trip_edge_cases(self, codec, layout):
        assert codec.parse(codec.render(layout)) == layout

    def test_parse_multipart_text(self, codec):
        message = Message(Role.USER, (TextPart("Hello "), TextPart("there")))
        [parsed] = codec.parse(codec.render([message]))
        assert parsed.text == message.text

    def test_parse_tool_result(self, codec):
        [parsed] = codec.parse(codec.render(TOOL_LAYOUT[2:]))
        assert parsed.tool_results[0].tool_name == "weather"
        assert parsed.tool_results[0].output == "sunny, 24C"

    def test_parse_without_role_prefix(self, tokenizer):
        codec = PlainTextCodec(tokenizer, include_role_prefix=False)
        assert [m.text for m in codec.parse("a\n\nb")] == ["a", "b"]

    def test_rejects_non_additive_tokenizer(self, tokenizer):
        tokenizer.tokenizer = MergingTokenizer()
        with pytest.raises(ValueError, match="additive"):
            PlainTextCodec(tokenizer)

    @pytest.mark.parametrize("separator", ["", "--x", "x\n"])
    def test_rejects_gluing_separator(self, tokenizer, separator):
        with pytest.raises(ValueError, match="Separator"):
            PlainTextCodec(tokenizer, join_messages_with=separator)

    def test_defaults_to_simple_tokenizer(self):
        assert PlainTextCodec().tokenizer.backend == "simple"

    def test_parse_empty(self, codec):
        assert codec.parse("") == []

    def test_message_tokens(self, codec):
        # user : Hello !
        assert codec.count_message_tokens(text_message("user", "Hello!")) == 4

    @pytest.mark.parametrize("layout", [[], TEXT_LAYOUT[:1], TEXT_LAYOUT, TOOL_LAYOUT, TOOL_LAYOUT[2:]])
    def test_accounting_is_exact(self, codec, layout):
        assert verify_token_accounting(codec, layout) == codec.count_tokens(codec.render(layout))

    def test_separator_charged_as_boundary(self, tokenizer):
        codec = PlainTextCodec(tokenizer, join_messages_with="\n---\n")
        assert codec.count_boundary_tokens(None, TEXT_LAYOUT[0]) == 0
        assert codec.count_boundary_tokens(TEXT_LAYOUT[0], TEXT_LAYOUT[1]) == 3
        verify_token_accounting(codec, TEXT_LAYOUT)

    def test_continued_layout_counts(self, codec):
        head, tail = TEXT_LAYOUT[:2], TEXT_LAYOUT[2:]
        total = codec.count_layout_tokens(head) + codec.count_layout_tokens(tail, prev=head[-1])
        assert total == codec.count_layout_tokens(TEXT_LAYOUT)


class TestChatMessagesCodec:
    """Test cases for ChatMessagesCodec."""

    def test_render_text(self, chat_codec):
        assert chat_codec.render(TEXT_LAYOUT[:2]) == [
            {"role": "system", "content": "You are helpful."},
            {"role": "user", "content": "Hello!"},
        ]

    def test_render_tool_exchange(self, chat_codec):
        rendered = chat_codec.render(TOOL_LAYOUT)
        assistant, tool = rendered[1], rendered[2]
        assert assistant["content"] == "Checking."
        assert assistant["reasoning_content"] == "Need the weather tool."
        assert assistant["tool_calls"] == [{
            "id": "call_1",
            "type": "function",
            "function": {"name": "weather", "arguments": '{"city": "Paris"}'},
        }]
        assert tool == {"role": "tool", "tool_call_id": "call_1", "name": "weather", "content": "sunny, 24C"}

    def test_parse_round_trip(self, chat_codec):
        assert chat_codec.parse(chat_codec.render(TEXT_LAYOUT)) == TEXT_LAYOUT

    @pytest.mark.parametrize("layout", EDGE_TEXT_LAYOUTS)
    def test_parse_round_trip_edge_cases(self, chat_codec, layout):
        assert chat_codec.parse(chat_codec.render(layout)) == layout

    def test_tool_call_without_text_round_trips(self, chat_codec):
        message = Message(Role.ASSISTANT, (ToolCallPart("call_1", "weather", "{}"),))
        rendered = chat_codec.render([message])
        assert rendered[0]["content"] is None
        assert chat_codec.parse(rendered) == [message]

    def test_parse_tool_exchange(self, chat_codec):
        parsed = chat_codec.parse(chat_codec.render(TOOL_LAYOUT))
        assert parsed[1].tool_calls == TOOL_LAYOUT[1].tool_calls
        assert parsed[1].reasoning == "Need the weather tool."
        assert parsed[2] == TOOL_LAYOUT[2]

    def test_parse_multipart_content(self, chat_codec):
        item = {"role": "user", "content": [{"type": "text", "text": "Hi "}, {"type": "text", "text": "there"}]}
        assert chat_codec.from_chat_message(item).text == "Hi there"

    def test_token_counts(self, chat_codec):
        # reply priming 3 + overhead 3 + "Hello" "!"
        assert chat_codec.count_tokens(chat_codec.render([text_message("user", "Hello!")])) == 8
        assert chat_codec.count_tokens([]) == 0

    @pytest.mark.parametrize("layout", [[], TEXT_LAYOUT[:1], TEXT_LAYOUT, TOOL_LAYOUT, TOOL_LAYOUT[2:]])
    def test_accounting_is_exact(self, chat_codec, layout):
        verify_token_accounting(chat_codec, layout)


class TestVerifyTokenAccounting:
    """Test cases for contract verification."""

    def test_detects_divergence(self, tokenizer):
        class MergingCodec(PlainTextCodec):
            def count_boundary_tokens(self, prev, next):
                return 1 if prev is not None else 0

        with pytest.raises(CodecContractViolation) as exc_info:
            verify_token_accounting(MergingCodec(tokenizer), TEXT_LAYOUT[:2])
        assert exc_info.value.incremental == exc_info.value.rendered + 1
