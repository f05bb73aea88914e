"""
PromptFitter: fit prompt trees for large language models into token budgets.

A prompt is a tree of messages grouped into priority-weighted scopes. When the
rendered prompt is over budget, scopes are reduced one at a time by their
strategies (truncate, omit, summarize) until it fits. A pinned prefix stays
untouched so provider-side prompt caches keep hitting.
"""

__version__ = "0.1.0"
__author__ = "PromptFitter Team"

from loguru import logger

from .codecs import ChatMessagesCodec, MessageCodec, PlainTextCodec, verify_token_accounting
from .config.settings import PromptFitConfig, get_default_config
from .core.builder import PromptBuilder
from .core.cache_pin import derive_cache_id, pin
from .core.fit_engine import FitEngine, FitResult, FitState, RenderHooks
from .core.render import RenderResult, render, render_sync
from .core.snapshot import Snapshot, SnapshotDiff, create_snapshot, diff_snapshots
from .core.tokenizer_service import TokenizerService
from .core.tree import (
    CacheHint,
    Message,
    PromptLayout,
    PromptTree,
    ReasoningPart,
    Role,
    Scope,
    StrategyContext,
    StrategyInput,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    create_scope,
    flatten,
    text_message,
)
from .core.validator import ToolIOContract, validate_tree
from .exceptions import (
    CodecContractViolation,
    FitFailureError,
    MalformedTreeError,
    MessageBoundaryError,
    PromptFitError,
    StrategyError,
)
from .memory import (
    InMemoryStore,
    InMemoryVectorStore,
    KVStore,
    MemoryEntry,
    UserScopedStore,
    UserScopedVectorStore,
    VectorStore,
)
from .providers import CallableProvider, ModelProvider
from .services import create_summary_strategy, omit, summary, truncate, vector_search

logger.disable("prompt_fitter")

__all__ = [
    "PromptBuilder",
    "render",
    "render_sync",
    "RenderResult",
    "RenderHooks",
    "FitEngine",
    "FitResult",
    "FitState",
    "Role",
    "Message",
    "Scope",
    "CacheHint",
    "PromptTree",
    "PromptLayout",
    "TextPart",
    "ReasoningPart",
    "ToolCallPart",
    "ToolResultPart",
    "StrategyInput",
    "StrategyContext",
    "create_scope",
    "text_message",
    "flatten",
    "pin",
    "derive_cache_id",
    "create_snapshot",
    "diff_snapshots",
    "Snapshot",
    "SnapshotDiff",
    "validate_tree",
    "ToolIOContract",
    "MessageCodec",
    "PlainTextCodec",
    "ChatMessagesCodec",
    "verify_token_accounting",
    "TokenizerService",
    "ModelProvider",
    "CallableProvider",
    "KVStore",
    "MemoryEntry",
    "InMemoryStore",
    "VectorStore",
    "InMemoryVectorStore",
    "UserScopedStore",
    "UserScopedVectorStore",
    "truncate",
    "omit",
    "summary",
    "create_summary_strategy",
    "vector_search",
    "PromptFitConfig",
    "get_default_config",
    "PromptFitError",
    "MalformedTreeError",
    "MessageBoundaryError",
    "FitFailureError",
    "StrategyError",
    "CodecContractViolation",
]
