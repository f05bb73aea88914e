"""Summary strategy for progressively summarizing conversation history."""

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence, Union

from loguru import logger
from pydantic import BaseModel, ValidationError

from ..core.tree import (
    Node,
    Role,
    Scope,
    Strategy,
    StrategyInput,
    create_scope,
    flatten,
    text_message,
)
from ..exceptions import StrategyError
from ..memory.key_value import KVStore
from ..providers.base import ModelProvider
from ..utils.awaitables import maybe_await

SUMMARY_SYSTEM_PROMPT = (
    "You are a conversation summarizer. Create a concise summary that captures "
    "the key points and context needed to continue the conversation. Be brief "
    "but preserve essential information."
)

SUMMARY_REQUEST = "Summarize the conversation above."
SUMMARY_UPDATE_REQUEST = "Update the summary based on the previous summary and the conversation above."

SUMMARY_HEADER = "[Summary of earlier conversation]"


class StoredSummary(BaseModel):
    """Summary data persisted across renders."""
    content: str


@dataclass(frozen=True)
class SummarizerContext:
    """What a summarizer gets to work with.

    Attributes:
        target: The scope being summarized
        existing_summary: Previously stored summary, or None on first use
        provider: Provider in scope, if any
    """
    target: Scope
    existing_summary: Optional[str]
    provider: Optional[ModelProvider] = None


Summarizer = Callable[[SummarizerContext], Union[str, Awaitable[str]]]


def build_summary_prompt(target: Scope, existing_summary: Optional[str]) -> Scope:
    """Build the prompt that asks a model to (re)summarize ``target``."""
    children = [text_message(Role.SYSTEM, SUMMARY_SYSTEM_PROMPT)]
    if existing_summary:
        children.append(text_message(Role.ASSISTANT, f"Current summary:\n{existing_summary}"))
    children.append(create_scope(target.children))
    children.append(text_message(Role.USER, SUMMARY_UPDATE_REQUEST if existing_summary else SUMMARY_REQUEST))
    return create_scope(children)


async def default_summarizer(ctx: SummarizerContext, provider: ModelProvider) -> str:
    """Summarize with the provider's completion API."""
    prompt = build_summary_prompt(ctx.target, ctx.existing_summary)
    rendered = provider.render(flatten(prompt))
    return await maybe_await(provider.completion(rendered))


def create_summary_strategy(id: str,
                            store: KVStore,
                            summarize: Optional[Summarizer] = None,
                            role: Role = Role.SYSTEM,
                            header: str = SUMMARY_HEADER) -> Strategy:
    """
    Create a strategy that replaces its scope with a stored, rolling summary.

    The previous summary is fetched fresh on every invocation and the new one is
    written with a single ``set`` after it has been produced, so a failing
    summarizer leaves the stored summary untouched.

    Args:
        id: Key of the summary in ``store``
        store: Key-value store persisting ``StoredSummary`` payloads
        summarize: Custom summarizer; defaults to the provider in scope
        role: Role of the emitted summary message
        header: Line placed above the summary text

    Returns:
        Strategy function
    """

    async def summary_strategy(input: StrategyInput) -> Optional[Scope]:
        target = input.target
        provider = input.context.provider

        existing = await maybe_await(store.get(id))
        existing_summary = None
        if existing is not None:
            try:
                existing_summary = StoredSummary.model_validate(existing.data).content
            except ValidationError as e:
                raise StrategyError(f"Stored summary {id!r} is malformed: {e}") from e

        ctx = SummarizerContext(target=target, existing_summary=existing_summary, provider=provider)
        if summarize is not None:
            new_summary = await maybe_await(summarize(ctx))
        elif provider is not None:
            new_summary = await default_summarizer(ctx, provider)
        else:
            raise StrategyError(
                f"Summary {id!r} requires either a summarize function or a provider. "
                "Pass a provider to render() or attach one to an enclosing scope."
            )

        await maybe_await(store.set(id, StoredSummary(content=new_summary).model_dump()))
        logger.debug(f"Stored summary {id!r} ({len(new_summary)} chars, previous={'yes' if existing_summary else 'no'})")

        text = f"{header}\n{new_summary}" if header else new_summary
        return create_scope([text_message(role, text)], priority=target.priority, id=target.id)

    return summary_strategy


def summary(children: Sequence[Node],
            id: str,
            store: KVStore,
            summarize: Optional[Summarizer] = None,
            priority: float = 0,
            role: Role = Role.SYSTEM) -> Scope:
    """A scope that summarizes its content when the prompt needs to shrink."""
    return create_scope(
        children,
        priority=priority,
        strategy=create_summary_strategy(id, store, summarize=summarize, role=role),
    )
