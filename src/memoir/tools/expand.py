"""``memoir_expand``: resolve a ``[ch_xxx]`` reference into full content or a preview."""

from __future__ import annotations

import json
from typing import Any

from memoir.service import MemoirService

EXPAND_DESCRIPTION = """\
Expand a chunk to see its full content. Use when a summary reference like [ch_xxx] needs more detail.

CONTEXT BUDGET: Full expansions can be large (1000-10000+ tokens). Use preview_only=true first to check size. For exploring multiple chunks, consider delegating to a subagent to preserve your context window."""


def _dumps(payload: dict[str, Any]) -> str:
    return json.dumps({k: v for k, v in payload.items() if v is not None}, ensure_ascii=False)


async def expand_tool(
    service: MemoirService,
    chunk_id: str,
    include_children: bool = False,
    preview_only: bool = False,
) -> str:
    """
    Run the expand tool and return its JSON envelope.

    Preview mode reads chunk headers only and reports an estimate of the full
    size; full mode renders every message and warns above
    ``ToolsConfig.expand_warning_tokens``.
    """
    threshold = service.config.tools.expand_warning_tokens

    if preview_only:
        headers = await service.expand_headers(chunk_id, include_children)
        if not headers:
            return _dumps({"success": False, "error": f"Chunk {chunk_id} not found"})
        sized = [(h, service.estimator.estimate_header(h)) for h in headers]
        total = sum(tokens for _, tokens in sized)
        if total > threshold:
            hint = (
                f"Full expansion would be ~{total} tokens."
                " Consider using a subagent for detailed analysis."
            )
        else:
            hint = "Use preview_only=false for full content."
        return _dumps(
            {
                "success": True,
                "mode": "preview",
                "chunk_count": len(headers),
                "estimated_full_tokens": total,
                "previews": service.renderer.previews(sized),
                "hint": hint,
            }
        )

    chunks = await service.expand(chunk_id, include_children)
    if not chunks:
        return _dumps({"success": False, "error": f"Chunk {chunk_id} not found"})

    content = service.renderer.chunks(chunks)
    estimated = service.estimator.estimate(content)
    warning = None
    if estimated > threshold:
        warning = (
            f"Large response (~{estimated} tokens). For future explorations of this size,"
            " consider delegating to a subagent to preserve context."
        )
    return _dumps(
        {
            "success": True,
            "chunk_count": len(chunks),
            "estimated_tokens": estimated,
            "content": content,
            "warning": warning,
        }
    )
