"""Tests for merge scoring and the deduplication pass (synthetic registries, no network)."""

from __future__ import annotations

import pytest

from orgpulse.models.contributor import ContributorRecord, MatchType
from orgpulse.services.contributor_registry import ContributorRegistry
from orgpulse.services.deduplication_service import deduplicate, find_match_sets
from orgpulse.services.merge_scoring import choose_primary, score_record


def _record(login: str, contributions: int = 0, **kwargs) -> ContributorRecord:
    kwargs.setdefault("display_login", login)
    kwargs.setdefault("repositories", {"repo"})
    return ContributorRecord(canonical_login=login, contributions=contributions, **kwargs)


def _registry(*records: ContributorRecord) -> ContributorRegistry:
    registry = ContributorRegistry()
    for record in records:
        registry.add(record)
    return registry


def _snapshot(registry: ContributorRegistry) -> list[dict]:
    return [r.model_dump() for r in registry.records()]


def test_score_components() -> None:
    record = _record(
        "octocat",
        contributions=10,
        verified_handle="Octocat",
        avatar_url="https://avatars.githubusercontent.com/u/1",
    )
    assert score_record(record) == pytest.approx(1 + 100 + 50 + 30 + 20 + 5)

    synthetic = _record("contributor-123", display_login="Some Person")
    assert score_record(synthetic) == pytest.approx(0)


def test_choose_primary_tie_goes_to_first() -> None:
    first = _record("aaa", contributions=1)
    second = _record("bbb", contributions=1)

    primary, _ = choose_primary([first, second])
    assert primary is first


def test_choose_primary_requires_records() -> None:
    with pytest.raises(ValueError):
        choose_primary([])


def test_shared_email_merges_into_higher_score() -> None:
    registry = _registry(
        _record("alice", 3, email="a@x.com", repositories={"api"}),
        _record("alice-1", 2, email="a@x.com", repositories={"web"}),
    )

    report = deduplicate(registry)

    assert len(registry) == 1
    alice = registry.get("alice")
    assert alice.contributions == 5
    assert alice.repositories == {"api", "web"}
    assert [(a.login, a.match_type, a.contributions) for a in alice.aliases] == [
        ("alice-1", MatchType.EMAIL, 2)
    ]
    assert report.merged_sets == 1
    assert report.absorbed_logins == ["alice-1"]


def test_shared_verified_handle_merges_records() -> None:
    registry = _registry(
        _record("mona", 40, avatar_url="https://avatars.githubusercontent.com/u/2"),
        _record(
            "mona.l",
            1,
            email="mona@corp.example",
            verified_handle="mona",
            verified_name="Mona Lisa",
            avatar_url="https://avatars.githubusercontent.com/u/2",
            html_url="https://github.com/mona",
        ),
    )
    registry.get("mona").verified_handle = "mona"

    deduplicate(registry)

    assert registry.logins() == ["mona"]
    assert registry.get("mona").contributions == 41


def test_verified_record_outranks_pending_duplicate() -> None:
    registry = _registry(
        _record("dana", 50, email="dana@example.com", pending_resolution=True),
        _record(
            "dana-gh",
            1,
            email="dana@example.com",
            verified_handle="dana-gh",
            avatar_url="https://avatars.githubusercontent.com/u/3",
            html_url="https://github.com/dana-gh",
        ),
    )

    deduplicate(registry)

    assert registry.logins() == ["dana-gh"]
    survivor = registry.get("dana-gh")
    assert survivor.contributions == 51
    assert survivor.aliases[0].login == "dana"


def test_primary_without_handle_inherits_verified_fields() -> None:
    registry = _registry(
        _record("erin", 5000, email="erin@example.com", pending_resolution=True),
        _record(
            "erin-x",
            1,
            email="erin@example.com",
            verified_handle="erinx",
            html_url="https://github.com/erinx",
        ),
    )

    deduplicate(registry)

    survivor = registry.get("erin")
    assert survivor is not None
    assert survivor.verified_handle == "erinx"
    assert survivor.html_url == "https://github.com/erinx"
    assert survivor.matched_by == MatchType.EMAIL.value
    assert survivor.pending_resolution is False


def test_similar_name_groups_records() -> None:
    registry = _registry(
        _record("jsmith", 4),
        _record("j.smith", 2, display_login="J Smith", email="jsmith@example.com"),
    )

    match_sets = find_match_sets(registry.records())
    assert [(m.match_type, m.key) for m in match_sets] == [(MatchType.SIMILAR_NAME, "jsmith")]

    deduplicate(registry)
    assert registry.logins() == ["jsmith"]
    assert registry.get("jsmith").contributions == 6


def test_name_match_duplicating_email_match_is_discarded() -> None:
    registry = _registry(
        _record("bobby", 1, email="bobby@example.com"),
        _record("bobby-2", 1, email="bobby@example.com"),
    )

    match_sets = find_match_sets(registry.records())
    assert [m.match_type for m in match_sets] == [MatchType.EMAIL]


def test_short_tokens_do_not_match() -> None:
    registry = _registry(_record("al", 1), _record("al-", 1, display_login="Al"))

    assert find_match_sets(registry.records()) == []


def test_dedup_preserves_total_contributions() -> None:
    registry = _registry(
        _record("ann", 3, email="ann@example.com"),
        _record("ann-b", 4, email="ann@example.com"),
        _record("annb", 5),
        _record("zed", 7),
        _record("ann-c", 1, verified_handle="ann-b"),
    )
    before = registry.total_contributions()

    deduplicate(registry)

    assert registry.total_contributions() == before
    assert len(registry) == 2


def test_dedup_is_idempotent() -> None:
    registry = _registry(
        _record("ann", 3, email="ann@example.com"),
        _record("ann-b", 4, email="ann@example.com", verified_handle="annb"),
        _record("annb", 5),
        _record("bob", 2, verified_handle="annb"),
        _record("zed", 7),
    )
    deduplicate(registry)
    after_first = _snapshot(registry)

    report = deduplicate(registry)

    assert _snapshot(registry) == after_first
    assert report.merged_sets == 0


def test_whitespace_bonus_uses_display_login() -> None:
    spaced = _record("jdoe", display_login="Jane Doe")
    compact = _record("jdoe", display_login="jdoe")

    assert score_record(compact) - score_record(spaced) == pytest.approx(5)
