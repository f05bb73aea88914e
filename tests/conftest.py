"""Shared fixtures.

Token counts in these tests use the ``simple`` backend: every word and every
punctuation character is one token, so ``"user: Hello!"`` costs 4 tokens with
the plain-text codec (``user``, ``:``, ``Hello``, ``!``) and separators are free.
"""

import pytest

from prompt_fitter.codecs.chat import ChatMessagesCodec
from prompt_fitter.codecs.plaintext import PlainTextCodec
from prompt_fitter.core.tokenizer_service import TokenizerService
from prompt_fitter.memory.key_value import InMemoryStore


@pytest.fixture
def tokenizer():
    return TokenizerService(backend="simple")


@pytest.fixture
def codec(tokenizer):
    return PlainTextCodec(tokenizer)


@pytest.fixture
def chat_codec(tokenizer):
    return ChatMessagesCodec(tokenizer)


class RecordingStore(InMemoryStore):
    """In-memory store that records every write."""

    def __init__(self):
        super().__init__()
        self.set_calls = []

    async def set(self, key, data, metadata=None):
        self.set_calls.append((key, data))
        await super().set(key, data, metadata)


@pytest.fixture
def store():
    return RecordingStore()
