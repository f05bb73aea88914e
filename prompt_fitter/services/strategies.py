"""Built-in reduction strategies."""

from dataclasses import replace
from typing import Optional

from ..core.tree import Scope, Strategy, StrategyInput

TRUNCATE_FROM = ("start", "end")


def truncate(budget: int, from_: str = "start") -> Strategy:
    """
    Create a strategy that drops children from one end of its scope.

    Each invocation drops ``max(1, total_tokens // budget)`` children, so trees far
    over budget shed many children per iteration. The scope disappears once it
    has no children left.

    Args:
        budget: Scaling budget for the drop count (must be positive)
        from_: Which end to drop from, 'start' (oldest first) or 'end'

    Returns:
        Strategy function
    """
    if budget <= 0:
        raise ValueError(f"Truncate budget must be positive, got {budget}")
    if from_ not in TRUNCATE_FROM:
        raise ValueError(f"Unknown truncate direction: {from_}")

    def truncate_strategy(input: StrategyInput) -> Optional[Scope]:
        children = input.target.children
        if not children:
            return None

        drop_count = max(1, input.total_tokens // budget)
        if from_ == "start":
            remaining = children[drop_count:]
        else:
            remaining = children[:max(0, len(children) - drop_count)]

        if not remaining:
            return None
        return replace(input.target, children=remaining)

    return truncate_strategy


def omit() -> Strategy:
    """Create a strategy that removes its whole scope in one step."""

    def omit_strategy(input: StrategyInput) -> Optional[Scope]:
        return None

    return omit_strategy
