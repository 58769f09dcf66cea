"""URL extraction, normalization and the linked-email repair pass."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator
from urllib.parse import urlsplit, urlunsplit

_URL_RE = re.compile(r"https?://\S+", re.IGNORECASE)
_TRAILING_PUNCT_RE = re.compile(r"[)\]}.,;:!?\"'<>]+$")
_LINKED_EMAIL_RE = re.compile(
    r"\b([A-Za-z0-9._%+-]+)@https?://([A-Za-z0-9.-]+\.[A-Za-z]{2,})(?:/[^\s)\]]*)?",
    re.IGNORECASE,
)
_FORBIDDEN_HOST_CHARS_RE = re.compile(r"[\s<>^|%\"'\\{}`]")

_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class UrlSpan:
    """One URL occurrence in a text, trailing punctuation already removed."""

    raw: str
    start: int
    end: int


def strip_trailing_punctuation(value: str) -> str:
    return _TRAILING_PUNCT_RE.sub("", value)


def repair_linked_emails(text: str) -> str:
    """Turn ``name@https://host/path`` back into ``name@host``."""
    return _LINKED_EMAIL_RE.sub(r"\1@\2", text)


def iter_url_spans(text: str) -> Iterator[UrlSpan]:
    """Yield every URL occurrence in ``text`` with its position."""
    for match in _URL_RE.finditer(text):
        raw = strip_trailing_punctuation(match.group(0))
        yield UrlSpan(raw=raw, start=match.start(), end=match.start() + len(raw))


def extract_urls(text: str) -> list[str]:
    """Return unique URL candidates in first-occurrence order."""
    seen: dict[str, None] = {}
    for span in iter_url_spans(text):
        seen.setdefault(span.raw, None)
    return list(seen)


def normalize_url(raw: str) -> str | None:
    """Canonicalize an absolute http(s) URL, or return None when malformed.

    Fragment and query are dropped, the whole string is lowercased and one
    trailing slash is removed, so ``https://Example.com/a/?q=1#top`` and
    ``https://example.com/a`` compare equal. Paths are therefore compared
    case-insensitively.
    """
    cleaned = strip_trailing_punctuation(str(raw).strip())
    try:
        parts = urlsplit(cleaned)
        port = parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    if scheme not in _DEFAULT_PORTS:
        return None

    host = parts.hostname
    if not host or _FORBIDDEN_HOST_CHARS_RE.search(host):
        return None
    try:
        host = host.encode("idna").decode("ascii")
    except UnicodeError:
        return None

    netloc = f"[{host}]" if ":" in host else host
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        netloc = f"{netloc}:{port}"
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    canonical = urlunsplit((scheme, netloc, parts.path or "/", "", "")).lower()
    if canonical.endswith("/"):
        canonical = canonical[:-1]
    return canonical


def host_of(url: str) -> str:
    """Return the hostname of ``url`` without a leading ``www.``."""
    try:
        host = urlsplit(url).hostname or ""
    except ValueError:
        return ""
    if host.startswith("www."):
        host = host[4:]
    return host


def base2(host: str) -> str:
    return ".".join(host.split(".")[-2:])


def base3(host: str) -> str:
    return ".".join(host.split(".")[-3:])
