from __future__ import annotations

import requests

from link_guard.links.liveness import (
    LivenessCache,
    LivenessProber,
    build_probe_session,
    is_ok_status,
)
from link_guard.links.policy import LinkPolicy


class _Clock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class _Resp:
    def __init__(self, status_code: int):
        self.status_code = status_code

    def __enter__(self):
        return self

    def __exit__(self, *_exc):
        return False


class _SessionStub:
    def __init__(self, head=200, get=200):
        self.head_result = head
        self.get_result = get
        self.calls: list[tuple[str, str, dict]] = []

    def _answer(self, result):
        if isinstance(result, Exception):
            raise result
        return _Resp(result)

    def head(self, url, **kwargs):
        self.calls.append(("HEAD", url, kwargs))
        return self._answer(self.head_result)

    def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        return self._answer(self.get_result)


def _prober(session, clock=None, skip=()):
    policy = LinkPolicy.build(skip_liveness=skip)
    cache = LivenessCache(ttl_seconds=30 * 60, clock=clock or _Clock())
    return LivenessProber(policy, cache=cache, session=session, timeout=8.0)


def test_ok_status_rule():
    assert is_ok_status(200)
    assert is_ok_status(302)
    assert not is_ok_status(404)
    assert not is_ok_status(501)
    for status in (401, 403, 405, 406, 429):
        assert is_ok_status(status)


def test_soft_ok_head_is_live_without_get():
    session = _SessionStub(head=403)
    assert _prober(session).is_live("https://example.org/page") is True
    assert [c[0] for c in session.calls] == ["HEAD"]


def test_head_405_with_get_200_is_live():
    session = _SessionStub(head=405, get=200)
    assert _prober(session).is_live("https://example.org/page") is True


def test_rejected_head_falls_back_to_get():
    session = _SessionStub(head=501, get=200)
    assert _prober(session).is_live("https://example.org/page") is True
    assert [c[0] for c in session.calls] == ["HEAD", "GET"]
    assert session.calls[1][2]["stream"] is True


def test_dead_after_head_and_get():
    session = _SessionStub(head=404, get=404)
    assert _prober(session).is_live("https://example.org/missing") is False
    assert [c[0] for c in session.calls] == ["HEAD", "GET"]


def test_transport_failure_is_not_live_and_is_cached():
    session = _SessionStub(head=requests.Timeout("timed out"))
    prober = _prober(session)

    assert prober.is_live("https://slow.example.org") is False
    assert prober.is_live("https://slow.example.org") is False
    assert [c[0] for c in session.calls] == ["HEAD"]


def test_get_failure_is_not_live():
    session = _SessionStub(head=500, get=requests.ConnectionError("refused"))
    assert _prober(session).is_live("https://example.org") is False


def test_probe_uses_timeout_redirects_and_headers():
    session = _SessionStub(head=200)
    _prober(session).is_live("https://example.org")

    _, url, kwargs = session.calls[0]
    assert url == "https://example.org"
    assert kwargs["timeout"] == 8.0
    assert kwargs["allow_redirects"] is True
    assert kwargs["headers"]["User-Agent"] == "LinkHealth/1.1"


def test_skip_listed_host_is_live_without_network_or_cache():
    session = _SessionStub(head=requests.ConnectionError("should not be called"))
    prober = _prober(session, skip=["dal.ca"])

    assert prober.is_live("https://dal.ca/anything") is True
    assert prober.is_live("https://libraries.dal.ca/x") is True
    assert session.calls == []
    assert len(prober.cache) == 0


def test_cached_result_reused_within_ttl_and_reprobed_after():
    clock = _Clock(1000.0)
    session = _SessionStub(head=200)
    prober = _prober(session, clock=clock)

    assert prober.is_live("https://example.org") is True
    clock.now += 29 * 60
    session.head_result = 404
    session.get_result = 404
    assert prober.is_live("https://example.org") is True
    assert len(session.calls) == 1

    clock.now += 2 * 60
    assert prober.is_live("https://example.org") is False
    assert [c[0] for c in session.calls] == ["HEAD", "HEAD", "GET"]


def test_cache_get_put_and_expiry():
    clock = _Clock()
    cache = LivenessCache(ttl_seconds=10, clock=clock)

    assert cache.get("k") == (False, False)
    cache.put("k", True)
    assert cache.get("k") == (True, True)

    clock.now = 10
    assert cache.get("k") == (False, False)
    assert len(cache) == 0


def test_cache_evicts_least_recently_used():
    cache = LivenessCache(ttl_seconds=60, max_entries=2, clock=_Clock())
    cache.put("a", True)
    cache.put("b", True)
    cache.get("a")
    cache.put("c", False)

    assert cache.get("a") == (True, True)
    assert cache.get("b") == (False, False)
    assert cache.get("c") == (False, True)


def test_build_probe_session_caps_redirects():
    session = build_probe_session(max_redirects=5)
    assert session.max_redirects == 5


def test_get_retry_carries_the_same_per_request_timeout():
    session = _SessionStub(head=501, get=200)
    _prober(session).is_live("https://example.org")

    assert [c[2]["timeout"] for c in session.calls] == [8.0, 8.0]
