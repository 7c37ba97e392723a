"""``memoir_history``: browse or search session history as compact summaries."""

from __future__ import annotations

import json
from typing import Any

import structlog

from memoir.models.chunk import Chunk
from memoir.render.markdown import isotime
from memoir.service import MemoirService

_logger = structlog.get_logger("memoir.tools.history")

HISTORY_DESCRIPTION = """\
Browse or search session history. Returns chunk summaries with IDs for memoir_expand.

DEFAULTS: Searches current session only. Returns recent chunks if no query provided.

OPTIONS:
- query: Search text (omit to list recent chunks)
- all_sessions: true to include past sessions
- session_ids: Search specific session IDs
- depth: Minimum chunk depth (0=original, 1+=summaries)
- limit: Max results (default 10)

Use memoir_expand({ chunk_id }) to see full content of any chunk."""

EXPAND_HINT = 'Use memoir_expand({ chunk_id: "ch_xxx" }) to see full content.'


def _dumps(payload: dict[str, Any]) -> str:
    return json.dumps({k: v for k, v in payload.items() if v is not None}, ensure_ascii=False)


def _chunk_entry(chunk: Chunk) -> dict[str, Any]:
    return {
        "id": chunk.id,
        "sessionId": chunk.session_id,
        "depth": chunk.depth,
        "status": chunk.status,
        "summary": chunk.summary or f"{chunk.message_count} messages",
        "stats": {
            "messages": chunk.message_count,
            "files_modified": len(chunk.content.metadata.files_modified),
        },
    }


def resolve_scope(
    current_session_id: str,
    all_sessions: bool,
    session_ids: list[str] | None,
) -> tuple[str | None, str]:
    """
    Pick the session filter and its human-readable label.

    Explicit ``session_ids`` win (only the first is searched), then
    ``all_sessions``, then the current session.
    """
    if session_ids:
        return session_ids[0], f"sessions: {', '.join(session_ids)}"
    if all_sessions:
        return None, "all sessions"
    return current_session_id, "current session"


async def history_tool(
    service: MemoirService,
    current_session_id: str,
    query: str | None = None,
    all_sessions: bool = False,
    session_ids: list[str] | None = None,
    depth: int | None = None,
    limit: int | None = None,
) -> str:
    """
    Run the history tool and return its JSON envelope.

    With no (or a blank) query the newest chunks in scope are listed; otherwise
    a ranked search runs with an estimate of what expanding every hit would
    cost in tokens.
    """
    tools_config = service.config.tools
    session_id, scope = resolve_scope(current_session_id, all_sessions, session_ids)
    limit = service.config.search.default_limit if limit is None else limit
    query = (query or "").strip()
    retry_hint = None if all_sessions else "Try with all_sessions: true to search past sessions"

    if not query:
        chunks = await service.get_recent_chunks(session_id, limit)
        if not chunks:
            return _dumps(
                {
                    "success": True,
                    "count": 0,
                    "scope": scope,
                    "mode": "recent",
                    "message": f"No chunks found in {scope}",
                    "hint": None if all_sessions else "Try with all_sessions: true to see past sessions",
                }
            )
        entries = [_chunk_entry(c) | {"created": isotime(c.created_at)} for c in chunks]
        return _dumps(
            {
                "success": True,
                "count": len(entries),
                "scope": scope,
                "mode": "recent",
                "chunks": entries,
                "hint": EXPAND_HINT,
            }
        )

    results = await service.search(query, session_id=session_id, depth=depth or 0, limit=limit)
    _logger.debug("history_search", query=query, scope=scope, hits=len(results))
    if not results:
        return _dumps(
            {
                "success": True,
                "count": 0,
                "scope": scope,
                "mode": "search",
                "query": query,
                "message": f'No matches for "{query}" in {scope}',
                "hint": retry_hint,
            }
        )

    entries = [_chunk_entry(r.chunk) | {"rank": r.rank} for r in results]
    estimator = service.estimator
    estimated_tokens = estimator.estimate(json.dumps(entries, separators=(",", ":")))
    expanded_tokens = sum(estimator.estimate_expansion(r.chunk.summary) for r in results)

    warning = None
    if (
        expanded_tokens > tools_config.search_warning_tokens
        and len(results) > tools_config.search_warning_min_results
    ):
        warning = (
            f"Expanding all {len(results)} results would use ~{expanded_tokens} tokens."
            " Consider using memoir_expand with preview_only=true first,"
            " or delegate detailed analysis to a subagent."
        )

    return _dumps(
        {
            "success": True,
            "count": len(results),
            "scope": scope,
            "mode": "search",
            "query": query,
            "estimated_tokens": estimated_tokens,
            "estimated_expanded_tokens": expanded_tokens,
            "chunks": entries,
            "hint": EXPAND_HINT,
            "warning": warning,
        }
    )
