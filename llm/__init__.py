"""LLM summarization of enriched properties."""

from .summarizer import PropertySummarizer, SummaryResult

__all__ = [
    "PropertySummarizer",
    "SummaryResult",
]
