"""Rewrite generated text so it only carries allowed, reachable links.

Each unique URL in the text gets exactly one decision:

- malformed URLs are removed;
- URLs outside the approved pages and whitelisted domains are replaced with
  the domain's fallback page, or removed when there is none;
- allowed URLs are probed, and dead ones are replaced with the domain's
  fallback page or a bare ``https://<host>`` link.

The text is rebuilt in one pass from the URL positions, so surrounding
content is never touched and repeated mentions get the same replacement.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from link_guard.config import config
from link_guard.links.audit import LinkAuditLogger, get_link_audit_logger
from link_guard.links.liveness import LivenessCache, LivenessProber, build_probe_session
from link_guard.links.policy import LinkPolicy, load_policy
from link_guard.links.urls import host_of, iter_url_spans, normalize_url, repair_linked_emails

logger = logging.getLogger(__name__)

KEEP = "keep"
STRIP_INVALID = "strip-invalid"
STRIP_DISALLOWED = "strip-disallowed"
FALLBACK_DOMAIN = "fallback-domain"
FALLBACK_LIVENESS = "fallback-liveness"
STRIP_DEAD = "strip-dead"


@dataclass(frozen=True)
class RewriteDecision:
    """What happened to one URL candidate; ``replacement`` is None for keep."""

    raw: str
    action: str
    replacement: str | None = None

    @property
    def output(self) -> str:
        return self.raw if self.replacement is None else self.replacement

    def to_dict(self) -> dict[str, Any]:
        record: dict[str, Any] = {"raw": self.raw, "action": self.action}
        if self.replacement is not None:
            record["to"] = self.replacement
        return record


@dataclass
class SanitizeResult:
    text: str
    decisions: list[RewriteDecision] = field(default_factory=list)

    @property
    def rewrites(self) -> list[RewriteDecision]:
        return [d for d in self.decisions if d.action != KEEP]

    def trace(self, limit: int = 50) -> list[dict[str, Any]]:
        return [d.to_dict() for d in self.decisions[: max(0, limit)]]


class LinkSanitizer:
    """Extract, check and rewrite the URLs in a piece of generated text."""

    def __init__(
        self,
        policy: LinkPolicy,
        prober: LivenessProber,
        *,
        debug: bool = False,
        trace_limit: int = 50,
        audit_logger: LinkAuditLogger | None = None,
    ) -> None:
        self.policy = policy
        self.prober = prober
        self.debug = debug
        self.trace_limit = trace_limit
        self.audit_logger = audit_logger

    def sanitize(self, text: str) -> str:
        return self.sanitize_with_trace(text).text

    def sanitize_with_trace(self, text: str) -> SanitizeResult:
        """Sanitize ``text``; on any internal error return it unchanged."""
        try:
            result = self._rewrite(text)
        except Exception:
            logger.exception("Link sanitization failed, returning original text")
            return SanitizeResult(text=text)

        if self.debug and result.rewrites:
            try:
                self._emit_trace(result)
            except Exception:
                logger.exception("Could not record link-fix trace")
        return result

    def decide(self, raw: str) -> RewriteDecision:
        norm = normalize_url(raw)
        if norm is None:
            return RewriteDecision(raw, STRIP_INVALID, "")

        host = host_of(norm)
        if not self.policy.is_allowed(norm):
            fallback = self.policy.fallback_for(host)
            if fallback:
                return RewriteDecision(raw, FALLBACK_DOMAIN, fallback)
            return RewriteDecision(raw, STRIP_DISALLOWED, "")

        if self.prober.is_live(norm):
            return RewriteDecision(raw, KEEP)

        fallback = self.policy.fallback_for(host) or (f"https://{host}" if host else "")
        if fallback:
            return RewriteDecision(raw, FALLBACK_LIVENESS, fallback)
        return RewriteDecision(raw, STRIP_DEAD, "")

    def _rewrite(self, text: str) -> SanitizeResult:
        working = repair_linked_emails(self.policy.apply_forced_rewrites(text))

        decisions: dict[str, RewriteDecision] = {}
        pieces: list[str] = []
        cursor = 0
        for span in iter_url_spans(working):
            decision = decisions.get(span.raw)
            if decision is None:
                decision = self.decide(span.raw)
                decisions[span.raw] = decision
            pieces.append(working[cursor:span.start])
            pieces.append(decision.output)
            cursor = span.end
        pieces.append(working[cursor:])

        return SanitizeResult(text="".join(pieces), decisions=list(decisions.values()))

    def _emit_trace(self, result: SanitizeResult) -> None:
        rewrites = result.rewrites
        trace = [d.to_dict() for d in rewrites[: max(0, self.trace_limit)]]
        logger.info("link-fixes (%d): %s", len(rewrites), trace)
        if self.audit_logger is not None:
            self.audit_logger.log(decisions=trace, total=len(rewrites))


@lru_cache(maxsize=1)
def get_link_sanitizer() -> LinkSanitizer:
    """Return the process-wide sanitizer built from runtime config."""
    links = config.links
    policy = load_policy(links.policy_path or None)
    prober = LivenessProber(
        policy,
        cache=LivenessCache(
            ttl_seconds=links.cache_ttl_seconds,
            max_entries=links.cache_max_entries,
        ),
        session=build_probe_session(max_redirects=links.max_redirects),
        timeout=links.probe_timeout,
        user_agent=links.user_agent,
    )
    return LinkSanitizer(
        policy,
        prober,
        debug=links.debug,
        trace_limit=links.trace_limit,
        audit_logger=get_link_audit_logger(),
    )
