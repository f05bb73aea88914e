"""The exceptions used by PromptFitter."""

from typing import Optional


class PromptFitError(Exception):
    """Base class for all PromptFitter errors."""


class MalformedTreeError(PromptFitError, ValueError):
    """When a prompt tree violates a structural invariant."""


class MessageBoundaryError(MalformedTreeError):
    """When content crosses a message boundary it is not allowed to cross."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        """Initialize error."""
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        """Return string representation."""
        base = super().__str__()
        if self.path:
            return f"{base} (at {self.path})"
        return base


class FitFailureError(PromptFitError):
    """When a prompt cannot be reduced below its token budget."""

    def __init__(
        self,
        total_tokens: int,
        budget: int,
        iteration: int = 0,
        reason: Optional[str] = None,
    ) -> None:
        """Initialize error."""
        super().__init__(total_tokens, budget)
        self.total_tokens = total_tokens
        self.budget = budget
        self.over_budget_by = total_tokens - budget
        self.iteration = iteration
        self.reason = reason

    def __str__(self) -> str:
        """Return string representation."""
        message = (
            f"Cannot fit prompt: {self.total_tokens} tokens exceeds budget "
            f"{self.budget} by {self.over_budget_by} (iteration {self.iteration})"
        )
        if self.reason:
            message = f"{message}: {self.reason}"
        return message


class StrategyError(PromptFitError):
    """When a built-in strategy cannot reduce its scope."""


class CodecContractViolation(PromptFitError):
    """When incremental token accounting disagrees with the rendered payload."""

    def __init__(self, incremental: int, rendered: int) -> None:
        """Initialize error."""
        super().__init__(incremental, rendered)
        self.incremental = incremental
        self.rendered = rendered

    def __str__(self) -> str:
        """Return string representation."""
        return (
            f"codec token accounting diverged: incremental count {self.incremental} "
            f"!= rendered count {self.rendered}"
        )
