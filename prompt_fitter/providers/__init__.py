"""Model providers used by summarizing strategies."""

from .base import CallableProvider, ModelProvider

__all__ = ["ModelProvider", "CallableProvider"]
