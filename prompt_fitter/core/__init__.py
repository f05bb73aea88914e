"""Prompt tree model, validation and cache pinning."""

from .cache_pin import cache_id_for, derive_cache_id, pin
from .tokenizer_service import TokenizerService
from .tree import (
    CacheHint,
    Message,
    Node,
    Part,
    PromptLayout,
    PromptTree,
    ReasoningPart,
    Role,
    Scope,
    Strategy,
    StrategyContext,
    StrategyInput,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    create_scope,
    flatten,
    text_message,
)
from .validator import ToolIOContract, validate_tree
