"""Public render entry point: validate, fit and render a prompt tree."""

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, Optional

from loguru import logger

from ..codecs.base import MessageCodec, TRendered
from .cache_pin import cache_id_for
from .fit_engine import FitEngine, RenderHooks
from .tree import CacheHint, PromptLayout, Scope
from .validator import ToolIOContract, validate_tree

if TYPE_CHECKING:
    from ..config.settings import PromptFitConfig
    from ..providers.base import ModelProvider


@dataclass
class RenderResult(Generic[TRendered]):
    """
    Output of a render call.

    Attributes:
        messages: Provider-native payload produced by the codec
        cache_id: Stable identifier of the pinned prefix, if the tree is pinned
        cache: Cache hint of the pinned prefix (carries ``ttl_seconds``)
        layout: Final message layout, pinned messages first
        tree: Fitted tree
        total_tokens: Token count of ``messages``
        budget: Budget the tree was fitted to
        iterations: Number of strategy invocations
    """
    messages: TRendered
    cache_id: Optional[str]
    cache: Optional[CacheHint]
    layout: PromptLayout
    tree: Optional[Scope]
    total_tokens: int
    budget: Optional[int]
    iterations: int


async def render(tree: Scope,
                 *,
                 codec: Optional[MessageCodec] = None,
                 provider: Optional["ModelProvider"] = None,
                 budget: Optional[int] = None,
                 hooks: Optional[RenderHooks] = None,
                 config: Optional["PromptFitConfig"] = None,
                 tool_io: Optional[ToolIOContract] = None,
                 validate: bool = True) -> RenderResult:
    """
    Fit ``tree`` into ``budget`` tokens and render it.

    Args:
        tree: Root scope of the prompt
        codec: Codec used for accounting and rendering; defaults to the provider's
            codec, then to the codec described by ``config``
        provider: Provider handed to strategies (e.g. summaries) and source of the codec
        budget: Token budget; None renders without fitting
        hooks: Optional fit-loop observers
        config: Supplies the selection order, accounting checks and default codec
        tool_io: Tool I/O contract to validate against; defaults to the codec's
        validate: Run the boundary validator before fitting

    Returns:
        RenderResult with the rendered payload and cache identifier

    Raises:
        MalformedTreeError: If the tree is structurally invalid
        FitFailureError: If the tree cannot be reduced below the budget
    """
    if codec is None and provider is not None:
        codec = provider.codec
    if codec is None and config is not None:
        codec = config.create_codec()
    if codec is None:
        raise ValueError("render() requires a codec, a provider or a config")

    if validate:
        validate_tree(tree, tool_io or codec.tool_io)

    engine_options: dict = {"hooks": hooks}
    if config is not None:
        engine_options["selection_order"] = config.fit.selection_order
        engine_options["verify_accounting"] = config.fit.verify_accounting
    engine = FitEngine(codec, **engine_options)

    result = await engine.fit(tree, budget, provider=provider)
    messages = codec.render(result.layout)

    cache = result.pinned.cache if result.pinned is not None else None
    cache_id = cache_id_for(cache) if cache is not None else None

    logger.info(
        f"Rendered {len(result.layout)} messages ({result.total_tokens} tokens, "
        f"budget {budget}) after {result.iterations} reductions"
    )

    return RenderResult(
        messages=messages,
        cache_id=cache_id,
        cache=cache,
        layout=result.layout,
        tree=result.tree,
        total_tokens=result.total_tokens,
        budget=budget,
        iterations=result.iterations,
    )


def render_sync(tree: Scope, **kwargs: Any) -> RenderResult:
    """Blocking wrapper around :func:`render` for callers without an event loop."""
    return asyncio.run(render(tree, **kwargs))
