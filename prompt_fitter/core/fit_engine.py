"""Fit engine: iteratively reduces a prompt tree until it fits a token budget."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from ..codecs.base import MessageCodec, verify_token_accounting
from ..exceptions import FitFailureError, StrategyError
from ..utils.awaitables import maybe_await
from .cache_pin import split_pinned
from .tree import (
    Path,
    PromptLayout,
    Scope,
    StrategyContext,
    StrategyInput,
    flatten,
    replace_at,
)

SELECTION_ORDERS = ("depth_first", "priority_first")


class FitState(Enum):
    """States of the fit loop."""
    MEASURING = "measuring"
    REDUCING = "reducing"
    DONE = "done"
    UNFITTABLE = "unfittable"


@dataclass
class Candidate:
    """A scope eligible for reduction."""
    scope: Scope
    path: Path
    depth: int
    order: int
    provider: Optional[Any] = None


@dataclass
class FitStartEvent:
    """Emitted once before the first measurement is compared with the budget."""
    tree: Scope
    budget: Optional[int]
    total_tokens: int
    pinned_tokens: int


@dataclass
class FitIterationEvent:
    """Emitted when a scope has been chosen for reduction."""
    iteration: int
    total_tokens: int
    target: Scope
    depth: int


@dataclass
class StrategyAppliedEvent:
    """Emitted after a strategy returns; ``result`` is None when the scope was removed."""
    iteration: int
    target: Scope
    result: Optional[Scope]


@dataclass
class FitCompleteEvent:
    """Emitted when the prompt fits."""
    iterations: int
    total_tokens: int


@dataclass
class FitErrorEvent:
    """Emitted before a fit error propagates."""
    iteration: int
    total_tokens: int
    error: Exception


@dataclass
class RenderHooks:
    """Optional observers of the fit loop, called synchronously."""
    on_fit_start: Optional[Callable[[FitStartEvent], None]] = None
    on_fit_iteration: Optional[Callable[[FitIterationEvent], None]] = None
    on_strategy_applied: Optional[Callable[[StrategyAppliedEvent], None]] = None
    on_fit_complete: Optional[Callable[[FitCompleteEvent], None]] = None
    on_fit_error: Optional[Callable[[FitErrorEvent], None]] = None


@dataclass
class FitResult:
    """Result of fitting a tree to a budget."""
    tree: Optional[Scope]
    layout: PromptLayout
    total_tokens: int
    budget: Optional[int]
    pinned: Optional[Scope] = None
    pinned_tokens: int = 0
    iterations: int = 0
    strategy_calls: int = 0
    reduced: List[Optional[str]] = field(default_factory=list)


class FitEngine:
    """Reduces prompt trees under a token budget, one strategy at a time.

    Each iteration re-measures the whole layout and reduces a single scope:
    the deepest, then highest-priority scope that still has a strategy and
    content (``selection_order="priority_first"`` swaps the first two keys).
    Ties go to the scope that comes first in tree order. The pinned scope is
    measured once and never reduced.
    """

    def __init__(self,
                 codec: MessageCodec,
                 selection_order: str = "depth_first",
                 verify_accounting: bool = False,
                 hooks: Optional[RenderHooks] = None):
        """
        Initialize fit engine.

        Args:
            codec: Codec used for all token accounting
            selection_order: 'depth_first' or 'priority_first'
            verify_accounting: Check the final layout against the rendered payload
            hooks: Optional fit-loop observers
        """
        if selection_order not in SELECTION_ORDERS:
            raise ValueError(f"Unknown selection order: {selection_order}")
        self.codec = codec
        self.selection_order = selection_order
        self.verify_accounting = verify_accounting
        self.hooks = hooks or RenderHooks()

    async def fit(self,
                  tree: Scope,
                  budget: Optional[int],
                  provider: Optional[Any] = None) -> FitResult:
        """
        Fit ``tree`` into ``budget`` tokens.

        The input tree is never mutated; every reduction produces a new tree.

        Args:
            tree: Root scope of the prompt
            budget: Token budget, or None to skip fitting
            provider: Default provider handed to strategies

        Returns:
            FitResult with the fitted tree and layout (pinned messages first)

        Raises:
            FitFailureError: If the tree cannot be reduced below the budget
        """
        if budget is not None and budget < 0:
            raise ValueError(f"Budget must be non-negative, got {budget}")

        pinned, current = split_pinned(tree)
        pinned_layout = flatten(pinned) if pinned is not None else []
        pinned_tokens = self.codec.count_layout_tokens(pinned_layout)
        last_pinned = pinned_layout[-1] if pinned_layout else None

        state = FitState.MEASURING
        total_tokens: Optional[int] = None
        layout: PromptLayout = []
        iteration = 0
        reduced: List[Optional[str]] = []

        try:
            while state not in (FitState.DONE, FitState.UNFITTABLE):
                if state is FitState.MEASURING:
                    remainder = flatten(current) if current is not None else []
                    measured = pinned_tokens + self.codec.count_layout_tokens(remainder, prev=last_pinned)
                    layout = pinned_layout + remainder

                    if total_tokens is None:
                        self._emit(self.hooks.on_fit_start, FitStartEvent(tree, budget, measured, pinned_tokens))
                        logger.debug(f"Fit start: {measured} tokens (pinned {pinned_tokens}), budget {budget}")
                    elif measured > total_tokens:
                        raise FitFailureError(measured, budget, iteration,
                                              reason=f"strategy increased the token count from {total_tokens}")
                    total_tokens = measured

                    if budget is None or total_tokens <= budget:
                        state = FitState.DONE
                    else:
                        state = FitState.REDUCING

                elif state is FitState.REDUCING:
                    candidate = self.select_candidate(current) if current is not None else None
                    if candidate is None:
                        state = FitState.UNFITTABLE
                        continue

                    iteration += 1
                    current = await self._reduce(current, candidate, total_tokens, budget, iteration, provider)
                    reduced.append(candidate.scope.id)
                    state = FitState.MEASURING
        except Exception as e:
            self._emit(self.hooks.on_fit_error, FitErrorEvent(iteration, total_tokens or 0, e))
            raise

        if state is FitState.UNFITTABLE:
            error = FitFailureError(total_tokens, budget, iteration, reason="no reducible scopes remain")
            logger.debug(f"Fit failed after {iteration} iterations: {error}")
            self._emit(self.hooks.on_fit_error, FitErrorEvent(iteration, total_tokens, error))
            raise error

        if self.verify_accounting:
            verify_token_accounting(self.codec, layout)

        self._emit(self.hooks.on_fit_complete, FitCompleteEvent(iteration, total_tokens))
        logger.debug(f"Fit done: {total_tokens} tokens after {iteration} iterations")

        fitted = current
        if pinned is not None:
            children = (pinned,) + (current.children if current is not None else ())
            base = current if current is not None else Scope()
            fitted = base.with_children(children)

        return FitResult(
            tree=fitted,
            layout=layout,
            total_tokens=total_tokens,
            budget=budget,
            pinned=pinned,
            pinned_tokens=pinned_tokens,
            iterations=iteration,
            strategy_calls=iteration,
            reduced=reduced,
        )

    async def _reduce(self,
                      tree: Scope,
                      candidate: Candidate,
                      total_tokens: int,
                      budget: int,
                      iteration: int,
                      provider: Optional[Any]) -> Optional[Scope]:
        """Invoke one strategy and substitute its result into the tree."""
        target = candidate.scope
        self._emit(self.hooks.on_fit_iteration,
                   FitIterationEvent(iteration, total_tokens, target, candidate.depth))
        logger.debug(
            f"Iteration {iteration}: reducing scope {target.id or candidate.path} "
            f"(priority {target.priority}, depth {candidate.depth}) at {total_tokens} tokens"
        )

        strategy_input = StrategyInput(
            target=target,
            total_tokens=total_tokens,
            iteration=iteration,
            context=StrategyContext(provider=candidate.provider or provider),
        )
        result = await maybe_await(target.strategy(strategy_input))

        if result is not None and not isinstance(result, Scope):
            raise StrategyError(f"Strategies must return a Scope or None, got {type(result).__name__}")
        if result == target:
            raise FitFailureError(total_tokens, budget, iteration, reason="strategy made no progress")

        self._emit(self.hooks.on_strategy_applied, StrategyAppliedEvent(iteration, target, result))
        return replace_at(tree, candidate.path, result)

    def select_candidate(self, tree: Scope) -> Optional[Candidate]:
        """Pick the next scope to reduce, or None if nothing is reducible."""
        candidates: List[Candidate] = []
        self._collect_candidates(tree, (), 0, None, candidates)
        if not candidates:
            return None

        if self.selection_order == "depth_first":
            return min(candidates, key=lambda c: (-c.depth, -c.scope.priority, c.order))
        return min(candidates, key=lambda c: (-c.scope.priority, -c.depth, c.order))

    def _collect_candidates(self,
                            scope: Scope,
                            path: Path,
                            depth: int,
                            provider: Optional[Any],
                            out: List[Candidate]) -> None:
        provider = scope.provider or provider
        if scope.reducible and scope.children:
            out.append(Candidate(scope, path, depth, len(out), provider))
        for index, child in enumerate(scope.children):
            if isinstance(child, Scope) and child.cache is None:
                self._collect_candidates(child, path + (index,), depth + 1, provider, out)

    @staticmethod
    def _emit(hook: Optional[Callable], event: Any) -> None:
        if hook is not None:
            hook(event)

    def get_fit_stats(self, result: FitResult) -> Dict[str, Any]:
        """Get statistics about a fit result."""
        role_counts: Dict[str, int] = {}
        for message in result.layout:
            role_counts[message.role.value] = role_counts.get(message.role.value, 0) + 1

        stats = {
            "total_tokens": result.total_tokens,
            "budget": result.budget,
            "budget_utilization": (
                result.total_tokens / result.budget if result.budget else 0
            ),
            "pinned_tokens": result.pinned_tokens,
            "pinned_messages": len(flatten(result.pinned)) if result.pinned is not None else 0,
            "total_messages": len(result.layout),
            "messages_by_role": role_counts,
            "iterations": result.iterations,
            "strategy_calls": result.strategy_calls,
            "reduced_scopes": [scope_id for scope_id in result.reduced if scope_id],
        }
        return stats
