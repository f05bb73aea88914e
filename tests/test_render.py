"""Tests for the render entry point."""

import pytest
from prompt_fitter.config.settings import PromptFitConfig
from prompt_fitter.core.builder import PromptBuilder
from prompt_fitter.core.cache_pin import derive_cache_id
from prompt_fitter.core.fit_engine import RenderHooks
from prompt_fitter.core.render import render, render_sync
from prompt_fitter.core.tree import Message, Role, Scope, ToolCallPart, ToolResultPart, create_scope, text_message
from prompt_fitter.exceptions import FitFailureError, MessageBoundaryError
from prompt_fitter.providers.base import CallableProvider


def pinned_prompt(version):
    return (
        PromptBuilder()
        .system("You are helpful.")
        .pin(id="system", version=version)
        .user("Hello!")
    )


class TestRender:
    """Test cases for render()."""

    @pytest.mark.asyncio
    async def test_pinned_prompt_cache_id(self, codec):
        budget = codec.count_layout_tokens([text_message("system", "You are helpful."), text_message("user", "Hello!")])

        first = await pinned_prompt("v1").render(codec=codec, budget=budget)
        second = await pinned_prompt("v2").render(codec=codec, budget=budget)

        assert first.layout[0] == text_message("system", "You are helpful.")
        assert first.messages == "system: You are helpful.\n\nuser: Hello!"
        assert first.cache_id == derive_cache_id("system", "v1", None)
        assert second.cache_id != first.cache_id
        assert first.cache.version == "v1"

    @pytest.mark.asyncio
    async def test_failing_summary_aborts_render(self, codec, store):
        def summarize(ctx):
            raise RuntimeError("summarizer failed")

        prompt = (
            PromptBuilder()
            .system("You are helpful.")
            .summary(lambda b: b.user("My name is Ada.").assistant("Hi Ada."), id="history",
                     store=store, summarize=summarize, priority=1)
            .user("What is my name?")
        )

        with pytest.raises(RuntimeError, match="summarizer failed"):
            await prompt.render(codec=codec, budget=10)
        assert store.set_calls == []
        assert await store.get("history") is None

    @pytest.mark.asyncio
    async def test_summary_with_provider(self, codec, store):
        provider = CallableProvider(codec, lambda rendered: "Ada")
        prompt = (
            PromptBuilder()
            .summary([text_message("user", "My name is Ada and I like long walks.")], id="history", store=store, priority=1)
            .user("Name?")
        )

        result = await prompt.render(provider=provider, budget=13)

        assert result.layout[0].text == "[Summary of earlier conversation]\nAda"
        assert (await store.get("history")).data == {"content": "Ada"}
        assert result.total_tokens == 13

    @pytest.mark.asyncio
    async def test_unlimited_render(self, chat_codec):
        tree = PromptBuilder().system("a").user("b").build()
        result = await render(tree, codec=chat_codec)
        assert result.messages == [{"role": "system", "content": "a"}, {"role": "user", "content": "b"}]
        assert result.cache_id is None
        assert result.iterations == 0

    @pytest.mark.asyncio
    async def test_unfittable_render(self, codec):
        tree = PromptBuilder().system("one two three").build()
        with pytest.raises(FitFailureError):
            await render(tree, codec=codec, budget=1)

    @pytest.mark.asyncio
    async def test_requires_codec(self):
        with pytest.raises(ValueError):
            await render(Scope())

    @pytest.mark.asyncio
    async def test_validates_raw_trees(self, codec):
        with pytest.raises(MessageBoundaryError):
            await render(Scope(children=("loose",)), codec=codec)

    @pytest.mark.asyncio
    async def test_validates_codec_tool_io(self, chat_codec):
        tree = create_scope([
            Message(Role.ASSISTANT, (ToolCallPart("call_1", "weather", {"city": "Paris"}),)),
            Message(Role.TOOL, (ToolResultPart("call_1", "weather", "sunny"),)),
        ])
        with pytest.raises(MessageBoundaryError, match="tool I/O contract"):
            await render(tree, codec=chat_codec)

    @pytest.mark.asyncio
    async def test_config_supplies_codec_and_order(self):
        config = PromptFitConfig.from_dict({
            'tokenizer': {'backend': 'simple'},
            'codec': {'kind': 'plaintext'},
            'fit': {'selection_order': 'priority_first', 'verify_accounting': True},
        })
        tree = (
            PromptBuilder()
            .omit(lambda b: b.user("a a a").omit([text_message("user", "b b b")], priority=1, id="inner"),
                  priority=5, id="outer")
            .build()
        )

        result = await render(tree, config=config, budget=5)

        assert result.messages == ""
        assert result.total_tokens == 0

    @pytest.mark.asyncio
    async def test_hooks_passed_through(self, codec):
        completed = []
        tree = PromptBuilder().user("hi").build()
        await render(tree, codec=codec, budget=100, hooks=RenderHooks(on_fit_complete=completed.append))
        assert completed[0].iterations == 0

    def test_render_sync(self, codec):
        result = render_sync(PromptBuilder().user("hi").build(), codec=codec, budget=100)
        assert result.messages == "user: hi"
