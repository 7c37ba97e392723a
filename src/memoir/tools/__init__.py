"""Agent-facing query tools returning JSON envelopes."""

from memoir.tools.expand import EXPAND_DESCRIPTION, expand_tool
from memoir.tools.history import HISTORY_DESCRIPTION, history_tool, resolve_scope

__all__ = [
    "EXPAND_DESCRIPTION",
    "HISTORY_DESCRIPTION",
    "expand_tool",
    "history_tool",
    "resolve_scope",
]
