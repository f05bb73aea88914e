"""Reduction strategies and content producers."""

from .retrieval import format_results, vector_search
from .strategies import omit, truncate
from .summarizer import StoredSummary, SummarizerContext, create_summary_strategy, summary

__all__ = [
    "truncate",
    "omit",
    "summary",
    "create_summary_strategy",
    "StoredSummary",
    "SummarizerContext",
    "vector_search",
    "format_results",
]
