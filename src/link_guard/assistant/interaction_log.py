"""Append-only JSON lines store for question/answer interactions."""

from __future__ import annotations

import json
import re
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path

from link_guard.config import config

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f\u2028\u2029]")


def clean_text(value: object) -> str | None:
    """Replace control and line-separator characters with spaces."""
    if not isinstance(value, str):
        return None
    return _CONTROL_CHARS_RE.sub(" ", value)


@dataclass
class InteractionLog:
    path: Path
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def append(
        self,
        *,
        user_input: str,
        answer: str | None = None,
        timestamp_ms: float | None = None,
    ) -> str:
        """Store one interaction and return its id."""
        if timestamp_ms is None:
            ts = datetime.now(timezone.utc)
        else:
            ts = datetime.fromtimestamp(timestamp_ms / 1000.0, tz=timezone.utc)

        record = {
            "id": uuid.uuid4().hex,
            "ts": ts.isoformat(),
            "input": clean_text(user_input),
            "response": clean_text(answer),
        }
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fp:
                fp.write(json.dumps(record, ensure_ascii=True) + "\n")
        return record["id"]


@lru_cache(maxsize=1)
def get_interaction_log() -> InteractionLog:
    return InteractionLog(path=Path(config.audit.interaction_log_path))
