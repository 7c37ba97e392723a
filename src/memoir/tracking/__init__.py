"""Streaming message aggregation and per-session state."""

from memoir.tracking.aggregator import (
    DraftMessage,
    DraftValidationError,
    MessageAggregator,
    UnknownMessageError,
    accept_host_part,
    derive_metadata,
    is_blank_part,
)
from memoir.tracking.registry import SessionRegistry, SessionState

__all__ = [
    "DraftMessage",
    "DraftValidationError",
    "MessageAggregator",
    "SessionRegistry",
    "SessionState",
    "UnknownMessageError",
    "accept_host_part",
    "is_blank_part",
    "derive_metadata",
]
