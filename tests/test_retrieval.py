"""Tests for vector-search content."""

import pytest
from prompt_fitter.core.tree import Role, flatten, text_message
from prompt_fitter.memory import InMemoryVectorStore
from prompt_fitter.services.retrieval import NO_RESULTS_TEXT, format_results, last_user_query, vector_search
from prompt_fitter.services.strategies import omit


def embed(text):
    return [text.count(letter) for letter in "abcxyz"]


class TestVectorSearch:
    """Test cases for vector_search()."""

    @pytest.mark.asyncio
    async def test_formats_results(self):
        store = InMemoryVectorStore(embed)
        await store.set("doc-a", "aabbcc")
        await store.set("doc-x", "xxyyzz")

        scope = await vector_search(store, query="abc", limit=1, priority=2, strategy=omit(), id="rag")
        [message] = flatten(scope)
        assert message.role is Role.USER
        assert message.text == "[1] (score: 1.000)\naabbcc"
        assert scope.priority == 2
        assert scope.id == "rag"
        assert scope.reducible

    @pytest.mark.asyncio
    async def test_query_from_messages(self):
        store = InMemoryVectorStore(embed)
        await store.set("doc-x", "xxyyzz")
        messages = [text_message("user", "xyz now"), text_message("assistant", "abc")]

        scope = await vector_search(store, messages=messages, threshold=0.9)
        assert "xxyyzz" in flatten(scope)[0].text

    @pytest.mark.asyncio
    async def test_no_results(self):
        scope = await vector_search(InMemoryVectorStore(embed), query="abc")
        assert flatten(scope)[0].text == NO_RESULTS_TEXT

    @pytest.mark.asyncio
    async def test_custom_formatter(self):
        store = InMemoryVectorStore(embed)
        await store.set("doc-a", "aabbcc")
        scope = await vector_search(store, query="abc", formatter=lambda results: ",".join(r.key for r in results))
        assert flatten(scope)[0].text == "doc-a"

    @pytest.mark.asyncio
    async def test_requires_query(self):
        with pytest.raises(ValueError):
            await vector_search(InMemoryVectorStore(embed), messages=[text_message("system", "hi")])


class TestHelpers:
    """Test cases for retrieval helpers."""

    def test_last_user_query_skips_blank(self):
        messages = [text_message("user", "first"), text_message("user", "  ")]
        assert last_user_query(messages) == "first"
        assert last_user_query([]) is None

    def test_format_empty(self):
        assert format_results([]) == NO_RESULTS_TEXT
