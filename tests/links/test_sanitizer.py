from __future__ import annotations

import json

from link_guard.links.audit import LinkAuditLogger
from link_guard.links.liveness import LivenessCache, LivenessProber
from link_guard.links.policy import LinkPolicy, default_policy
from link_guard.links.sanitizer import (
    FALLBACK_DOMAIN,
    FALLBACK_LIVENESS,
    KEEP,
    STRIP_DISALLOWED,
    STRIP_INVALID,
    LinkSanitizer,
)


class _ProberStub:
    def __init__(self, dead=(), error: Exception | None = None):
        self.dead = set(dead)
        self.error = error
        self.calls: list[str] = []

    def is_live(self, url: str) -> bool:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return url not in self.dead


class _Resp:
    def __init__(self, status_code: int):
        self.status_code = status_code

    def __enter__(self):
        return self

    def __exit__(self, *_exc):
        return False


class _SessionStub:
    def __init__(self, status: int):
        self.status = status
        self.calls: list[tuple[str, str]] = []

    def head(self, url, **_kwargs):
        self.calls.append(("HEAD", url))
        return _Resp(self.status)

    def get(self, url, **_kwargs):
        self.calls.append(("GET", url))
        return _Resp(self.status)


def _canada_policy() -> LinkPolicy:
    return LinkPolicy.build(
        approved=["https://ccv-cvc.ca"],
        whitelist=["canada.ca", "help.example.org"],
        fallbacks={
            "canada.ca": "https://www.canada.ca",
            "servicecanada.gc.ca": "https://www.canada.ca/en/services/benefits.html",
        },
        skip_liveness=["dal.ca"],
    )


def test_disallowed_link_stripped_and_email_repaired():
    prober = _ProberStub()
    sanitizer = LinkSanitizer(default_policy(), prober)

    result = sanitizer.sanitize_with_trace(
        "See https://GITHUB.com/x and contact a@http://dal.ca/page"
    )

    assert result.text == "See  and contact a@dal.ca"
    assert [d.action for d in result.decisions] == [STRIP_DISALLOWED]
    assert prober.calls == []


def test_approved_skip_listed_page_is_preserved_without_probe():
    session = _SessionStub(status=404)
    policy = default_policy()
    prober = LivenessProber(policy, cache=LivenessCache(), session=session)
    sanitizer = LinkSanitizer(policy, prober)
    text = "Wellness: https://www.dal.ca/campus_life/health-and-wellness.html."

    assert sanitizer.sanitize(text) == text
    assert session.calls == []


def test_dead_whitelisted_link_replaced_with_fallback_everywhere():
    session = _SessionStub(status=404)
    policy = _canada_policy()
    sanitizer = LinkSanitizer(policy, LivenessProber(policy, session=session))
    text = (
        "Apply at https://www.canada.ca/en/gone.html. "
        "Again: https://www.canada.ca/en/gone.html"
    )

    result = sanitizer.sanitize_with_trace(text)

    assert result.text == "Apply at https://www.canada.ca. Again: https://www.canada.ca"
    assert [d.action for d in result.decisions] == [FALLBACK_LIVENESS]
    assert session.calls == [
        ("HEAD", "https://www.canada.ca/en/gone.html"),
        ("GET", "https://www.canada.ca/en/gone.html"),
    ]


def test_dead_link_without_fallback_becomes_bare_host():
    prober = _ProberStub(dead={"https://help.example.org/kb/1"})
    sanitizer = LinkSanitizer(_canada_policy(), prober)

    out = sanitizer.sanitize("Read https://help.example.org/kb/1 first")

    assert out == "Read https://help.example.org first"


def test_disallowed_link_with_fallback_is_substituted():
    sanitizer = LinkSanitizer(_canada_policy(), _ProberStub())
    result = sanitizer.sanitize_with_trace("Benefits: https://servicecanada.gc.ca/eng/x.shtml")

    assert result.text == "Benefits: https://www.canada.ca/en/services/benefits.html"
    assert result.decisions[0].action == FALLBACK_DOMAIN


def test_invalid_link_is_removed():
    sanitizer = LinkSanitizer(_canada_policy(), _ProberStub())
    result = sanitizer.sanitize_with_trace("bad https://exa<mple.com/x here")

    assert result.text == "bad  here"
    assert result.decisions[0].action == STRIP_INVALID


def test_live_link_and_surrounding_punctuation_untouched():
    sanitizer = LinkSanitizer(_canada_policy(), _ProberStub())
    text = "(see https://www.canada.ca/en/page.html), or [https://bad.example/x]."

    result = sanitizer.sanitize_with_trace(text)

    assert result.text == "(see https://www.canada.ca/en/page.html), or []."
    assert [d.action for d in result.decisions] == [KEEP, STRIP_DISALLOWED]


def test_url_prefix_of_another_url_is_not_rewritten_inside_it():
    policy = LinkPolicy.build(approved=["https://a.example/page"])
    sanitizer = LinkSanitizer(policy, _ProberStub())

    out = sanitizer.sanitize("https://a.example and https://a.example/page")

    assert out == " and https://a.example/page"


def test_approved_url_is_still_probed_unless_skip_listed():
    prober = _ProberStub(dead={"https://ccv-cvc.ca"})
    sanitizer = LinkSanitizer(_canada_policy(), prober)

    result = sanitizer.sanitize_with_trace("CV: https://ccv-cvc.ca/")

    assert prober.calls == ["https://ccv-cvc.ca"]
    assert result.decisions[0].action == FALLBACK_LIVENESS
    assert result.text == "CV: https://ccv-cvc.ca"


def test_repeated_candidate_probed_once():
    prober = _ProberStub()
    sanitizer = LinkSanitizer(_canada_policy(), prober)

    sanitizer.sanitize("https://canada.ca/a https://canada.ca/a https://canada.ca/a")

    assert prober.calls == ["https://canada.ca/a"]


def test_sanitize_is_idempotent():
    prober = _ProberStub(dead={"https://www.canada.ca/en/gone.html"})
    sanitizer = LinkSanitizer(_canada_policy(), prober)
    text = (
        "Links: https://www.canada.ca/en/gone.html, https://github.com/x, "
        "https://www.canada.ca/en/ok.html and https://servicecanada.gc.ca/y"
    )

    once = sanitizer.sanitize(text)
    assert sanitizer.sanitize(once) == once


def test_sanitize_returns_original_text_on_internal_error():
    prober = _ProberStub(error=RuntimeError("boom"))
    sanitizer = LinkSanitizer(_canada_policy(), prober)
    text = "mail a@http://dal.ca/x and https://canada.ca/page"

    result = sanitizer.sanitize_with_trace(text)

    assert result.text == text
    assert result.decisions == []


def test_text_without_links_is_unchanged():
    sanitizer = LinkSanitizer(_canada_policy(), _ProberStub())
    assert sanitizer.sanitize("Plain answer, no links. Ünïcödé ✓") == "Plain answer, no links. Ünïcödé ✓"


def test_debug_trace_is_capped_and_audited(tmp_path):
    path = tmp_path / "link-fixes.jsonl"
    sanitizer = LinkSanitizer(
        _canada_policy(),
        _ProberStub(),
        debug=True,
        trace_limit=2,
        audit_logger=LinkAuditLogger(path=path),
    )

    sanitizer.sanitize("https://a.test/1 https://b.test/2 https://c.test/3 https://canada.ca")

    record = json.loads(path.read_text(encoding="utf-8").strip())
    assert record["total"] == 3
    assert [d["raw"] for d in record["decisions"]] == ["https://a.test/1", "https://b.test/2"]
    assert record["decisions"][0]["action"] == STRIP_DISALLOWED


def test_no_audit_record_without_debug(tmp_path):
    path = tmp_path / "link-fixes.jsonl"
    sanitizer = LinkSanitizer(
        _canada_policy(),
        _ProberStub(),
        audit_logger=LinkAuditLogger(path=path),
    )

    sanitizer.sanitize("https://a.test/1")

    assert not path.exists()


def test_trace_serialization():
    sanitizer = LinkSanitizer(_canada_policy(), _ProberStub())
    result = sanitizer.sanitize_with_trace("https://canada.ca/x https://a.test/y")

    assert result.trace() == [
        {"raw": "https://canada.ca/x", "action": KEEP},
        {"raw": "https://a.test/y", "action": STRIP_DISALLOWED, "to": ""},
    ]
    assert result.trace(limit=1) == [{"raw": "https://canada.ca/x", "action": KEEP}]


def test_unwritable_audit_log_does_not_break_sanitize(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    sanitizer = LinkSanitizer(
        _canada_policy(),
        _ProberStub(),
        debug=True,
        audit_logger=LinkAuditLogger(path=blocker / "link-fixes.jsonl"),
    )

    result = sanitizer.sanitize_with_trace("see https://bad.test/x")

    assert result.text == "see "
    assert [d.action for d in result.decisions] == [STRIP_DISALLOWED]
