"""Domain policy tables and the allow / fallback / skip-liveness lookups."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from link_guard.links.urls import base2, base3, host_of, normalize_url

logger = logging.getLogger(__name__)

# Exact pages that are always allowed, whatever their host.
DEFAULT_APPROVED = (
    "https://www.dal.ca/campus_life/health-and-wellness.html",
    "https://www.chairs-chaires.gc.ca/chairholders-titulaires/index-eng.aspx",
    "https://www.mcgill.ca/research/research/human/reb/forms-and-guidelines",
    "https://fundingopps-osr.research.mcgill.ca",
    # Interagency canonical links
    "https://science.gc.ca/site/science/en/interagency-research-funding/policies-and-guidelines/selecting-appropriate-federal-granting-agency",
    "https://science.gc.ca/site/science/en/interagency-research-funding/policies-and-guidelines/open-access",
    "https://science.gc.ca/site/science/en/interagency-research-funding/policies-and-guidelines/research-data-management",
    "https://ccv-cvc.ca",
)

DEFAULT_WHITELIST = (
    "dal.ca", "cdn.dal.ca", "libraries.dal.ca", "medicine.dal.ca", "ukings.ca",
    "mcgill.ca", "mcgilllibrary.ca", "fundingopps-osr.research.mcgill.ca",
    "canada.ca", "servicecanada.gc.ca", "esdc.gc.ca",
    "nserc-crsng.gc.ca", "sshrc-crsh.gc.ca", "sshrc-crsh.canada.ca", "cihr-irsc.gc.ca",
    "science.gc.ca", "researchnet-recherchenet.ca", "innovation.ca", "mitacs.ca",
    "genomecanada.ca", "cfref-apogee.gc.ca", "researchns.ca", "springboardatlantic.ca",
    "u15.ca", "crdcn.ca", "alliancecan.ca", "crkn-rcdr.ca",
    "flybermudair.com", "help.flybermudair.com", "flightstatus.flybermudair.com",
    "bermudair.inkcloud.io", "storage.aerocrs.com", "a-us.storyblok.com",
    "bermudaholidays.com", "bermudair.bamboohr.com", "dsu.ca",
)

DEFAULT_FALLBACKS = {
    "servicecanada.gc.ca": "https://www.canada.ca/en/services/benefits.html",
    "canada.ca": "https://www.canada.ca",
    "esdc.gc.ca": "https://www.canada.ca/en/employment-social-development.html",
    "science.gc.ca": "https://science.gc.ca/site/science/en/interagency-research-funding/policies-and-guidelines",
    "sshrc-crsh.gc.ca": "https://www.sshrc-crsh.gc.ca",
    "sshrc-crsh.canada.ca": "https://sshrc-crsh.canada.ca/en",
    "dal.ca": "https://www.dal.ca",
    "cdn.dal.ca": "https://www.dal.ca",
    "libraries.dal.ca": "https://libraries.dal.ca",
    "ukings.ca": "https://ukings.ca",
    "dsu.ca": "https://www.dsu.ca",
    # Academic lifecycle pages (sabbaticals, tenure, promotion)
    "apo.mcgill.ca": "https://www.mcgill.ca/apo/",
    "mcgill.ca": "https://www.mcgill.ca/research/",
    "mcgilllibrary.ca": "https://www.mcgill.ca/library",
    # BermudAir
    "flybermudair.com": "https://www.flybermudair.com/",
    "help.flybermudair.com": "https://help.flybermudair.com/kb/en",
    "flightstatus.flybermudair.com": "https://www.flybermudair.com/",
    "bermudair.inkcloud.io": "https://www.flybermudair.com/",
    "storage.aerocrs.com": "https://www.flybermudair.com/pages/policies-legal-information",
    "a-us.storyblok.com": "https://www.flybermudair.com/pages/policies-legal-information",
    "bermudaholidays.com": "https://www.flybermudair.com/pages/holidays",
    "bermudair.bamboohr.com": "https://www.flybermudair.com/",
}

# Hosts whose own firewalls make probes unreliable; always treated as live.
DEFAULT_SKIP_LIVENESS = ("mcgill.ca", "dal.ca", "ukings.ca")


class PolicyError(ValueError):
    """Raised when a policy file cannot be loaded."""


@dataclass(frozen=True)
class LinkPolicy:
    """Immutable policy tables consulted by the sanitizer."""

    approved: frozenset[str] = frozenset()
    whitelist: frozenset[str] = frozenset()
    fallbacks: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    skip_liveness: frozenset[str] = frozenset()
    forced_rewrites: tuple[tuple[re.Pattern[str], str], ...] = ()

    @classmethod
    def build(
        cls,
        *,
        approved: Iterable[str] = (),
        whitelist: Iterable[str] = (),
        fallbacks: Mapping[str, str] | None = None,
        skip_liveness: Iterable[str] = (),
        forced_rewrites: Iterable[tuple[str, str]] = (),
    ) -> "LinkPolicy":
        """Build a policy from plain values, normalizing approved URLs."""
        normalized = set()
        for url in approved:
            norm = normalize_url(url)
            if norm is None:
                raise PolicyError(f"approved URL is not a valid http(s) URL: {url!r}")
            normalized.add(norm)

        return cls(
            approved=frozenset(normalized),
            whitelist=frozenset(h.strip().lower() for h in whitelist),
            fallbacks=MappingProxyType(
                {h.strip().lower(): url for h, url in (fallbacks or {}).items()}
            ),
            skip_liveness=frozenset(h.strip().lower() for h in skip_liveness),
            forced_rewrites=tuple(
                (re.compile(pattern, re.IGNORECASE), replacement)
                for pattern, replacement in forced_rewrites
            ),
        )

    def is_allowed(self, normalized: str | None) -> bool:
        """Approved exact URL, or host whitelisted at full/base2/base3 level."""
        if not normalized:
            return False
        if normalized in self.approved:
            return True
        host = host_of(normalized)
        return (
            host in self.whitelist
            or base2(host) in self.whitelist
            or base3(host) in self.whitelist
        )

    def fallback_for(self, host: str) -> str:
        """Most specific fallback URL for ``host``, or empty string."""
        for key in (host, base2(host), base3(host)):
            fallback = self.fallbacks.get(key)
            if fallback:
                return fallback
        return ""

    def skips_liveness(self, host: str) -> bool:
        return host in self.skip_liveness or base2(host) in self.skip_liveness

    def apply_forced_rewrites(self, text: str) -> str:
        for pattern, replacement in self.forced_rewrites:
            text = pattern.sub(lambda _m, r=replacement: r, text)
        return text


def default_policy() -> LinkPolicy:
    return LinkPolicy.build(
        approved=DEFAULT_APPROVED,
        whitelist=DEFAULT_WHITELIST,
        fallbacks=DEFAULT_FALLBACKS,
        skip_liveness=DEFAULT_SKIP_LIVENESS,
    )


def _table(raw: dict, key: str, default: Any, kind: type, strings: bool = True) -> Any:
    """Return ``raw[key]`` (or ``default``), checking its JSON type."""
    value = raw.get(key, default)
    if value is default:
        return value
    if not isinstance(value, kind):
        raise PolicyError(f"policy key {key!r} must be a JSON {kind.__name__}")
    if strings:
        items = value.items() if isinstance(value, dict) else ((v, v) for v in value)
        if not all(isinstance(k, str) and isinstance(v, str) for k, v in items):
            raise PolicyError(f"policy key {key!r} must hold only strings")
    return value


def load_policy(path: str | Path | None = None) -> LinkPolicy:
    """Load policy tables, overriding built-in defaults from a JSON file.

    Keys missing from the file keep their default tables.
    """
    if not path:
        return default_policy()

    policy_path = Path(path)
    try:
        raw: Any = json.loads(policy_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise PolicyError(f"cannot read policy file {policy_path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise PolicyError(f"policy file {policy_path} must contain a JSON object")

    forced = _table(raw, "forced_rewrites", [], list, strings=False)
    for pair in forced:
        if not (
            isinstance(pair, list)
            and len(pair) == 2
            and all(isinstance(part, str) for part in pair)
        ):
            raise PolicyError(
                f"forced_rewrites entries must be [pattern, replacement] pairs: {pair!r}"
            )

    try:
        policy = LinkPolicy.build(
            approved=_table(raw, "approved", DEFAULT_APPROVED, list),
            whitelist=_table(raw, "whitelist", DEFAULT_WHITELIST, list),
            fallbacks=_table(raw, "fallbacks", DEFAULT_FALLBACKS, dict),
            skip_liveness=_table(raw, "skip_liveness", DEFAULT_SKIP_LIVENESS, list),
            forced_rewrites=[tuple(pair) for pair in forced],
        )
    except PolicyError:
        raise
    except (re.error, TypeError, ValueError, AttributeError) as exc:
        raise PolicyError(f"invalid policy file {policy_path}: {exc}") from exc
    logger.info(
        "Loaded link policy from %s: %d approved, %d whitelisted, %d fallbacks",
        policy_path,
        len(policy.approved),
        len(policy.whitelist),
        len(policy.fallbacks),
    )
    return policy
