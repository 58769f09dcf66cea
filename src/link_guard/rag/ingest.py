"""Greenlist loader: embed the reference URL list into ChromaDB."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from link_guard.rag.store import GreenlistStore

logger = logging.getLogger(__name__)


class GreenlistError(ValueError):
    """Raised when the greenlist file is missing or unusable."""


def read_greenlist(path: str | Path) -> list[tuple[str, str]]:
    """Read ``(url, category)`` pairs from a JSON greenlist file.

    The file holds either a flat list of URLs or an object mapping a
    category name to a list of URLs. Blank and duplicate URLs are dropped,
    first occurrence wins.
    """
    greenlist_path = Path(path)
    if not greenlist_path.exists():
        raise GreenlistError(f"greenlist file not found: {greenlist_path}")

    try:
        raw: Any = json.loads(greenlist_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise GreenlistError(f"greenlist file is not valid JSON: {exc}") from exc

    if isinstance(raw, list):
        grouped = {"": raw}
    elif isinstance(raw, dict):
        grouped = raw
    else:
        raise GreenlistError("greenlist must be a JSON list or object of lists")

    entries: dict[str, str] = {}
    for category, urls in grouped.items():
        if not isinstance(urls, list):
            raise GreenlistError(f"category {category!r} must map to a list of URLs")
        for url in urls:
            value = str(url).strip()
            if value:
                entries.setdefault(value, str(category))

    if not entries:
        raise GreenlistError("greenlist must contain at least one URL")
    return list(entries.items())


def ingest_greenlist(
    greenlist_path: str | Path,
    store: GreenlistStore,
    reset: bool = True,
) -> int:
    """Embed every greenlist URL into ``store``.

    Returns:
        Number of URLs stored. URLs that fail to embed are logged and skipped.
    """
    entries = read_greenlist(greenlist_path)
    logger.info("Loaded %d greenlist URLs from %s", len(entries), greenlist_path)

    if reset:
        store.reset()

    stored = 0
    for url, category in entries:
        try:
            store.add_urls([url], [category])
        except Exception as exc:
            logger.error("Failed to embed %s: %s", url, exc)
            continue
        stored += 1
        logger.debug("Inserted %s", url)

    logger.info("Greenlist population complete: %d/%d URLs stored", stored, len(entries))
    return stored
