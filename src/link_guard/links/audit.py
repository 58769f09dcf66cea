"""Structured audit logging for link rewrite decisions."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any

from link_guard.config import config


@dataclass
class LinkAuditLogger:
    """Append-only JSON lines logger, one record per sanitize call."""

    path: Path
    enabled: bool = True
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def log(self, *, decisions: list[dict[str, Any]], total: int) -> None:
        if not self.enabled or not decisions:
            return

        record = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "total": total,
            "decisions": decisions,
        }
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fp:
                fp.write(json.dumps(record, ensure_ascii=True) + "\n")


@lru_cache(maxsize=1)
def get_link_audit_logger() -> LinkAuditLogger:
    """Return singleton audit logger based on runtime config."""
    return LinkAuditLogger(
        path=Path(config.audit.path),
        enabled=config.audit.enabled,
    )
