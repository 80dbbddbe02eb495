"""Derive a canonical GitHub-style handle from an (email, name) pair.

Rules are tried in order and the first one producing a non-empty handle wins.
The last rule always produces a stable ``contributor-<n>`` placeholder, so any
non-empty input maps to the same handle on every run.
"""

from __future__ import annotations

import hashlib
import re
from typing import Iterable, Optional

from orgpulse.config import DEFAULT_FIRST_PARTY_EMAIL_DOMAINS, DEFAULT_NOREPLY_EMAIL_DOMAIN

FALLBACK_PREFIX = "contributor-"

_MENTION_RE = re.compile(r"(?<![\w.+\-@])@([A-Za-z0-9][A-Za-z0-9-]{2,38})")
_HANDLE_RE = re.compile(r"[A-Za-z0-9-]{3,39}")
_PAREN_RE = re.compile(r"\(\s*@?([A-Za-z0-9][A-Za-z0-9-]*)\s*\)")
_SEGMENT_RE = re.compile(r"[A-Za-z0-9._-]+")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_FALLBACK_RE = re.compile(r"^contributor-\d+$")


def name_token(value: str | None) -> str:
    """Lowercase and strip everything that is not a-z or 0-9."""
    return _NON_ALNUM_RE.sub("", (value or "").lower())


def is_fallback_handle(login: str | None) -> bool:
    return bool(login) and bool(_FALLBACK_RE.match(login.lower()))


def fallback_handle(seed: str) -> str:
    digest = hashlib.sha1(seed.strip().lower().encode("utf-8")).hexdigest()
    return f"{FALLBACK_PREFIX}{int(digest[:8], 16)}"


def _split_email(email: str) -> tuple[str, str]:
    if "@" not in email:
        return email, ""
    local, domain = email.split("@", 1)
    return local, domain


def _noreply_pattern(noreply_domain: str) -> re.Pattern[str]:
    return re.compile(r"^\d+\+([A-Za-z0-9-]+)@" + re.escape(noreply_domain) + r"$", re.IGNORECASE)


def _domain_matches(domain: str, suffixes: Iterable[str]) -> bool:
    domain = domain.lower()
    return any(domain == s or domain.endswith("." + s) for s in suffixes)


def normalize_identity(
    email: str | None,
    name: str | None,
    *,
    first_party_domains: Iterable[str] = DEFAULT_FIRST_PARTY_EMAIL_DOMAINS,
    noreply_domain: str = DEFAULT_NOREPLY_EMAIL_DOMAIN,
) -> Optional[str]:
    """Return a lowercase canonical handle, or None when both inputs are empty."""
    email = (email or "").strip()
    name = (name or "").strip()
    if not email and not name:
        return None

    local, domain = _split_email(email)

    mention = _MENTION_RE.search(name)
    if mention:
        return mention.group(1).lower()

    if email:
        noreply = _noreply_pattern(noreply_domain).match(email)
        if noreply:
            return noreply.group(1).lower()

        # Double-encoded addresses such as "123+user@host@relay" keep the
        # handle between "+" and the next "@".
        if "+" in email:
            segment = email.split("+", 1)[1].split("@", 1)[0]
            if len(segment) > 2 and _SEGMENT_RE.fullmatch(segment):
                return segment.lower()

        if domain and local and _domain_matches(domain, first_party_domains):
            return local.lower()

    if _HANDLE_RE.fullmatch(name):
        return name.lower()

    paren = _PAREN_RE.search(name)
    if paren:
        return paren.group(1).lower()

    if local and not local.isdigit() and len(local) > 2:
        return local.lower()

    if name:
        first = name_token(name.split()[0])
        if len(first) > 2:
            return first
        whole = name_token(name)
        if whole:
            return whole

    return fallback_handle(email or name)
