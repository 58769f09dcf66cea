"""Turn retrieved greenlist rows into the prompt context block."""

from __future__ import annotations


def unique_urls(rows: list[dict], limit: int = 8) -> list[str]:
    """Distinct, trimmed ``content`` values in rank order, capped at ``limit``."""
    seen: dict[str, None] = {}
    for row in rows:
        url = str(row.get("content", "")).strip()
        if url:
            seen.setdefault(url, None)
    return list(seen)[: max(0, limit)]


def build_context_block(rows: list[dict], limit: int = 8) -> str:
    return "\n".join(f"URL: {url}\n" for url in unique_urls(rows, limit))
