"""Reachability checks for allowed links, with a TTL cache."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable

import requests
from requests.adapters import HTTPAdapter

from link_guard.links.policy import LinkPolicy
from link_guard.links.urls import host_of

logger = logging.getLogger(__name__)

# Statuses meaning "the page exists but refuses this client or method".
SOFT_OK_STATUSES = frozenset({401, 403, 405, 406, 429})

_ACCEPT = "text/html,application/pdf;q=0.9,*/*;q=0.8"


def is_ok_status(status: int) -> bool:
    return 200 <= status < 400 or status in SOFT_OK_STATUSES


class LivenessCache:
    """Thread-safe TTL cache of probe results, bounded with LRU eviction."""

    def __init__(
        self,
        ttl_seconds: float = 1800.0,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max(1, max_entries)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, tuple[bool, float]] = OrderedDict()

    def get(self, key: str) -> tuple[bool, bool]:
        """Return ``(value, found)``; stale entries count as missing."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False, False
            value, stored_at = entry
            if now - stored_at >= self.ttl_seconds:
                del self._entries[key]
                return False, False
            self._entries.move_to_end(key)
            return value, True

    def put(self, key: str, value: bool) -> None:
        now = self._clock()
        with self._lock:
            self._entries[key] = (value, now)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def build_probe_session(max_redirects: int = 5, pool_size: int = 10) -> requests.Session:
    """Session that follows at most ``max_redirects`` and never retries."""
    session = requests.Session()
    session.max_redirects = max_redirects
    adapter = HTTPAdapter(
        pool_connections=pool_size,
        pool_maxsize=pool_size,
        max_retries=0,
    )
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class LivenessProber:
    """Decide whether an allowed, normalized URL currently resolves.

    Skip-listed hosts are trusted without a request. Otherwise a ``HEAD`` is
    sent, then a ``GET`` when the ``HEAD`` status is not acceptable, because
    some servers reject ``HEAD`` for pages that load fine. Results are cached
    per normalized URL.

    ``timeout`` is the requests connect/read timeout, applied to each hop of
    each request. A probe that follows several slow redirects, then retries
    with ``GET``, can take longer than ``timeout`` in total.
    """

    def __init__(
        self,
        policy: LinkPolicy,
        cache: LivenessCache | None = None,
        session: requests.Session | None = None,
        timeout: float = 8.0,
        user_agent: str = "LinkHealth/1.1",
    ) -> None:
        self.policy = policy
        self.cache = cache if cache is not None else LivenessCache()
        self.session = session if session is not None else build_probe_session()
        self.timeout = timeout
        self.headers = {"User-Agent": user_agent, "Accept": _ACCEPT}

    def is_live(self, url: str) -> bool:
        if self.policy.skips_liveness(host_of(url)):
            return True

        cached, found = self.cache.get(url)
        if found:
            return cached

        ok = self._probe(url)
        self.cache.put(url, ok)
        return ok

    def _probe(self, url: str) -> bool:
        try:
            head = self.session.head(
                url,
                headers=self.headers,
                timeout=self.timeout,
                allow_redirects=True,
            )
            if is_ok_status(head.status_code):
                return True

            logger.debug("HEAD %s returned %s, retrying with GET", url, head.status_code)
            with self.session.get(
                url,
                headers=self.headers,
                timeout=self.timeout,
                allow_redirects=True,
                stream=True,
            ) as resp:
                return is_ok_status(resp.status_code)
        except requests.RequestException as exc:
            logger.warning("Liveness check failed for %s: %s", url, exc)
            return False
