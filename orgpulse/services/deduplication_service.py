"""Final merge pass over the contributor registry.

Three independent criteria propose match-sets of logins that look like one
person: a shared stored email, a shared verified GitHub handle, and a shared
normalized name token. Each match-set is merged into its highest-scoring
member. Discovery is repeated until a round merges nothing, so running the
pass on its own output changes nothing.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable

from pydantic import BaseModel, Field

from orgpulse.config import DEFAULT_AVATAR_HOST
from orgpulse.models.contributor import ContributorAlias, ContributorRecord, MatchSet, MatchType
from orgpulse.services.contributor_registry import ContributorRegistry
from orgpulse.services.identity_normalizer import name_token
from orgpulse.services.merge_scoring import choose_primary

log = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 3


class DeduplicationReport(BaseModel):
    match_sets: list[MatchSet] = Field(default_factory=list)
    merged_sets: int = 0
    absorbed_logins: list[str] = Field(default_factory=list)
    rounds: int = 0


def _grouped(index: dict[str, list[str]], match_type: MatchType) -> list[MatchSet]:
    return [
        MatchSet(match_type=match_type, key=key, logins=logins)
        for key, logins in index.items()
        if len(logins) > 1
    ]


def _append_unique(index: dict[str, list[str]], key: str, login: str) -> None:
    if login not in index[key]:
        index[key].append(login)


def _record_tokens(record: ContributorRecord) -> list[str]:
    candidates = [
        record.canonical_login,
        name_token(record.canonical_login),
        name_token(record.display_login),
        name_token(record.verified_handle),
    ]
    if record.email and "@" in record.email:
        candidates.append(name_token(record.email.split("@", 1)[0]))
    tokens: list[str] = []
    for token in candidates:
        if token and len(token) >= MIN_TOKEN_LENGTH and token not in tokens:
            tokens.append(token)
    return tokens


def find_match_sets(records: Iterable[ContributorRecord]) -> list[MatchSet]:
    """Discover match-sets in registry order: email, then handle, then name."""
    records = list(records)
    by_email: dict[str, list[str]] = defaultdict(list)
    by_handle: dict[str, list[str]] = defaultdict(list)
    by_token: dict[str, list[str]] = defaultdict(list)

    for record in records:
        login = record.canonical_login
        if record.email:
            _append_unique(by_email, record.email.strip().lower(), login)
        if record.verified_handle:
            _append_unique(by_handle, record.verified_handle.strip().lower(), login)
        for token in _record_tokens(record):
            _append_unique(by_token, token, login)

    found = _grouped(by_email, MatchType.EMAIL) + _grouped(by_handle, MatchType.GITHUB_LOGIN)
    seen = [frozenset(m.logins) for m in found]
    for match in _grouped(by_token, MatchType.SIMILAR_NAME):
        members = frozenset(match.logins)
        if members in seen:
            log.debug("Skipping name match %r: same logins already matched", match.key)
            continue
        seen.append(members)
        found.append(match)
    return found


def _absorb(primary: ContributorRecord, other: ContributorRecord, match_type: MatchType, avatar_host: str) -> None:
    primary.aliases.append(
        ContributorAlias(
            login=other.canonical_login,
            match_type=match_type,
            contributions=other.contributions,
            repositories=sorted(other.repositories),
        )
    )
    primary.aliases.extend(other.aliases)
    primary.contributions += other.contributions
    primary.repositories |= other.repositories

    if other.verified_handle and not primary.verified_handle:
        primary.verified_handle = other.verified_handle
        primary.verified_name = other.verified_name
        primary.avatar_url = other.avatar_url
        primary.html_url = other.html_url
        primary.matched_by = match_type.value
        primary.pending_resolution = False
    elif (
        other.avatar_url
        and avatar_host in other.avatar_url.lower()
        and not (primary.avatar_url and avatar_host in primary.avatar_url.lower())
    ):
        primary.avatar_url = other.avatar_url


def _merge_round(
    registry: ContributorRegistry, report: DeduplicationReport, avatar_host: str
) -> int:
    match_sets = find_match_sets(registry.records())
    report.match_sets.extend(match_sets)
    absorbed: set[str] = set()
    merged = 0

    for match in match_sets:
        members = [
            registry.get(login)
            for login in match.logins
            if login not in absorbed and login in registry
        ]
        members = [m for m in members if m is not None]
        if len(members) <= 1:
            continue

        primary, score = choose_primary(members, avatar_host)
        log.info(
            "Merging %s match %r into %s (score %.1f)",
            match.match_type.value,
            match.key,
            primary.canonical_login,
            score,
        )
        for member in members:
            if member is primary:
                continue
            _absorb(primary, member, match.match_type, avatar_host)
            registry.remove(member.canonical_login)
            absorbed.add(member.canonical_login)
            report.absorbed_logins.append(member.canonical_login)
        merged += 1
        log.debug(
            "%s now has %d contributions in %d repositories",
            primary.canonical_login,
            primary.contributions,
            len(primary.repositories),
        )
    return merged


def deduplicate(registry: ContributorRegistry, avatar_host: str = DEFAULT_AVATAR_HOST) -> DeduplicationReport:
    """Merge duplicate records in place and return what was merged."""
    report = DeduplicationReport()
    avatar_host = avatar_host.lower()
    while True:
        report.rounds += 1
        merged = _merge_round(registry, report, avatar_host)
        report.merged_sets += merged
        if merged == 0:
            break
    log.info(
        "Deduplication finished: %d sets merged, %d aliases absorbed, %d contributors remain",
        report.merged_sets,
        len(report.absorbed_logins),
        len(registry),
    )
    return report
