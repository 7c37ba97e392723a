"""Compaction engine and summary strategies."""

from memoir.compaction.engine import CompactionEngine, aggregate_metadata
from memoir.compaction.summarizers import (
    LLMSummarizer,
    MetadataSummarizer,
    Summarizer,
    make_summarizer,
)

__all__ = [
    "CompactionEngine",
    "LLMSummarizer",
    "MetadataSummarizer",
    "Summarizer",
    "aggregate_metadata",
    "make_summarizer",
]
