"""Scoring used to pick the surviving record when duplicates are merged."""

from __future__ import annotations

from typing import Sequence

from orgpulse.config import DEFAULT_AVATAR_HOST
from orgpulse.models.contributor import ContributorRecord
from orgpulse.services.identity_normalizer import is_fallback_handle

CONTRIBUTION_WEIGHT = 0.1
VERIFIED_BONUS = 100.0
LOGIN_MATCHES_HANDLE_BONUS = 50.0
FIRST_PARTY_AVATAR_BONUS = 30.0
REAL_LOGIN_BONUS = 20.0
NO_WHITESPACE_BONUS = 5.0


def score_record(record: ContributorRecord, avatar_host: str = DEFAULT_AVATAR_HOST) -> float:
    score = CONTRIBUTION_WEIGHT * record.contributions
    if record.verified_handle:
        score += VERIFIED_BONUS
        if record.canonical_login.lower() == record.verified_handle.lower():
            score += LOGIN_MATCHES_HANDLE_BONUS
    if record.avatar_url and avatar_host.lower() in record.avatar_url.lower():
        score += FIRST_PARTY_AVATAR_BONUS
    if not is_fallback_handle(record.canonical_login):
        score += REAL_LOGIN_BONUS
    # Checked on display_login: canonical_login is a normalized handle and never holds whitespace.
    if not any(ch.isspace() for ch in record.display_login):
        score += NO_WHITESPACE_BONUS
    return score


def choose_primary(
    records: Sequence[ContributorRecord], avatar_host: str = DEFAULT_AVATAR_HOST
) -> tuple[ContributorRecord, float]:
    """Highest score wins; the earliest record wins a tie."""
    if not records:
        raise ValueError("choose_primary needs at least one record")
    best = records[0]
    best_score = score_record(best, avatar_host)
    for record in records[1:]:
        score = score_record(record, avatar_host)
        if score > best_score:
            best, best_score = record, score
    return best, best_score
