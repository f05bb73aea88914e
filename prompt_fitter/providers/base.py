"""Model provider contract used by summarizing strategies."""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Generic, Sequence, Type, TypeVar, Union

from pydantic import BaseModel

from ..codecs.base import MessageCodec, TRendered
from ..core.tree import Message
from ..utils.awaitables import maybe_await

M = TypeVar("M", bound=BaseModel)


class ModelProvider(ABC, Generic[TRendered]):
    """
    A model provider that can generate completions.

    The provider owns the codec that renders layouts into its native payload,
    so a provider is all a render call needs for both budgeting and model calls.
    """

    codec: MessageCodec[TRendered]

    def render(self, layout: Sequence[Message]) -> TRendered:
        return self.codec.render(layout)

    def count_tokens(self, rendered: TRendered) -> int:
        return self.codec.count_tokens(rendered)

    @abstractmethod
    async def completion(self, rendered: TRendered) -> str:
        """Generate a text completion from a rendered prompt."""
        pass

    async def object(self, rendered: TRendered, schema: Type[M]) -> M:
        """
        Generate a structured object validated against ``schema``.

        Providers with native structured output should override this; the
        default parses the completion text as JSON.
        """
        text = await self.completion(rendered)
        return schema.model_validate_json(text)


CompletionFunction = Callable[[TRendered], Union[str, Awaitable[str]]]


class CallableProvider(ModelProvider[TRendered]):
    """Provider backed by a plain (sync or async) completion function."""

    def __init__(self, codec: MessageCodec[TRendered], complete: CompletionFunction):
        self.codec = codec
        self._complete = complete

    async def completion(self, rendered: TRendered) -> str:
        return await maybe_await(self._complete(rendered))
