"""Co-author extraction from commit messages.

Commit trailers are written by people and tools that do not agree on a format,
so several overlapping strategies run over every message:

- ``line``: one trailer per line (``Co-Authored-By: Name <email>`` and variants)
- ``multi_marker``: several ``Co-Authored-By:`` markers squashed onto one line
- ``sweep``: a whole-message regex with optional names
- ``mention``: ``@handle`` mentions, mapped to a no-reply address
- ``bare_email``: any email-shaped substring

Results are unioned in that order and de-duplicated by email (case-insensitive),
first hit wins. Which strategies run depends on ``CoauthorStrictness``.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterator

from orgpulse.config import DEFAULT_NOREPLY_EMAIL_DOMAIN, CoauthorStrictness
from orgpulse.models.contributor import CandidateIdentity

log = logging.getLogger(__name__)

_MARKERS = r"(?:co[-\s]authored[-\s]by|co-author|credits|signed-off-by|author|with)"

_LINE_RE = re.compile(
    r"(?<![\w-])" + _MARKERS + r"\s*:\s*([^<\n]*)<([^>\n]+)>",
    re.IGNORECASE,
)
_COAUTHORED_SPLIT_RE = re.compile(r"co-authored-by:", re.IGNORECASE)
_SEGMENT_RE = re.compile(r"^([^<]*)<([^>]+)>")
_SWEEP_RE = re.compile(
    r"(?<![\w-])" + _MARKERS + r"\s*:[ \t]*(?:([^<\n]+?)[ \t]*)?<([^>\n]+)>",
    re.IGNORECASE,
)
_MENTION_RE = re.compile(r"(?<![\w.+\-@])@([A-Za-z0-9][A-Za-z0-9-]*)")
_EMAIL_RE = re.compile(r"\b([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})\b")

Pairs = Iterator[tuple[str, str]]


def _is_email(value: str) -> bool:
    return bool(_EMAIL_RE.fullmatch(value))


def _normalize_newlines(message: str) -> str:
    return message.replace("\r\n", "\n").replace("\r", "\n")


def _scan_lines(message: str, noreply_domain: str) -> Pairs:
    for raw_line in _normalize_newlines(message).split("\n"):
        line = raw_line.strip()
        if not line:
            continue
        for match in _LINE_RE.finditer(line):
            yield match.group(1).strip(), match.group(2).strip()


def _scan_multi_marker(message: str, noreply_domain: str) -> Pairs:
    flat = re.sub(r"[\r\n]+", " ", message)
    for segment in _COAUTHORED_SPLIT_RE.split(flat)[1:]:
        match = _SEGMENT_RE.match(segment)
        if match:
            yield match.group(1).strip(), match.group(2).strip()


def _sweep(message: str, noreply_domain: str) -> Pairs:
    for match in _SWEEP_RE.finditer(message):
        yield (match.group(1) or "").strip(), match.group(2).strip()


def _scan_mentions(message: str, noreply_domain: str) -> Pairs:
    for match in _MENTION_RE.finditer(message):
        handle = match.group(1).rstrip("-")
        if len(handle) < 3:
            continue
        yield f"@{handle}", f"{handle.lower()}@{noreply_domain}"


def _scan_bare_emails(message: str, noreply_domain: str) -> Pairs:
    for match in _EMAIL_RE.finditer(message):
        yield "", match.group(1)


_ALL = frozenset(CoauthorStrictness)
_STRATEGIES: list[tuple[str, Callable[[str, str], Pairs], frozenset[CoauthorStrictness]]] = [
    ("line", _scan_lines, _ALL),
    ("multi_marker", _scan_multi_marker, _ALL),
    ("sweep", _sweep, _ALL),
    ("mention", _scan_mentions, frozenset({CoauthorStrictness.LOOSE})),
    ("bare_email", _scan_bare_emails, frozenset({CoauthorStrictness.STANDARD, CoauthorStrictness.LOOSE})),
]


def strategy_names(strictness: CoauthorStrictness = CoauthorStrictness.LOOSE) -> list[str]:
    return [name for name, _, levels in _STRATEGIES if strictness in levels]


def extract_coauthors(
    message: str | None,
    strictness: CoauthorStrictness = CoauthorStrictness.LOOSE,
    noreply_domain: str = DEFAULT_NOREPLY_EMAIL_DOMAIN,
) -> list[CandidateIdentity]:
    """Return co-author candidates found in a commit message, unique by email."""
    if not message:
        return []

    seen: set[str] = set()
    out: list[CandidateIdentity] = []
    for name, strategy, levels in _STRATEGIES:
        if strictness not in levels:
            continue
        for author_name, email in strategy(message, noreply_domain):
            if not _is_email(email):
                log.debug("Skipping co-author %r <%s> (%s): not a plain email address", author_name, email, name)
                continue
            key = email.lower()
            if key in seen:
                continue
            seen.add(key)
            out.append(CandidateIdentity(name=author_name, email=email, source_heuristic=name))
    return out
