"""End-to-end collection against a fake GitHub API (respx, no network)."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
import respx
from httpx import Request, Response

from orgpulse.config import CoauthorStrictness, Settings
from orgpulse.services.contributor_registry import ContributorRegistry
from orgpulse.services.github_client import GitHubClient
from orgpulse.services import metrics_collector
from orgpulse.services.metrics_collector import (
    RepositoryScan,
    apply_scan,
    collect_metrics,
    is_primary_repository,
    order_repositories,
    repository_metrics,
)

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)
OLD = "2020-01-01T00:00:00Z"

REPOS = [
    {"name": "legacy", "stargazers_count": 1, "pushed_at": OLD},
    {"name": "flagship", "stargazers_count": 10, "forks_count": 4, "pushed_at": OLD},
    {"name": "fresh", "stargazers_count": 2, "pushed_at": "2024-04-28T00:00:00Z"},
]

CONTRIBUTORS = {
    "flagship": [
        {"login": "alice", "contributions": 10, "avatar_url": "https://avatars.githubusercontent.com/u/1"},
        {"login": "bob", "contributions": 5},
    ],
    "fresh": [
        {"login": "alice", "contributions": 3},
        {"login": "carol-gh", "contributions": 2, "avatar_url": "https://avatars.githubusercontent.com/u/3"},
    ],
}

COMMITS = {
    "flagship": [
        {
            "author": {"login": "alice"},
            "commit": {"message": "Add feature\n\nCo-authored-by: Carol Lee <carol@example.com>"},
        },
        {
            "author": None,
            "commit": {"message": "Fix bug\n\nCo-authored-by: Bob <12345+bob@users.noreply.github.com>"},
        },
    ],
    "fresh": [],
}


def fake_github(request: Request) -> Response:
    path = request.url.path
    params = request.url.params
    if path == "/rate_limit":
        return Response(200, json={"resources": {"core": {"remaining": 5000, "limit": 5000}}})
    if path == "/orgs/acme/repos":
        return Response(200, json=REPOS)
    if path == "/search/users":
        if "carol@example.com" not in params.get("q", ""):
            return Response(200, json={"items": []})
        return Response(
            200,
            json={
                "items": [
                    {
                        "login": "carol-gh",
                        "avatar_url": "https://avatars.githubusercontent.com/u/3",
                        "html_url": "https://github.com/carol-gh",
                    }
                ]
            },
        )
    if path == "/users/carol-gh":
        return Response(200, json={"login": "carol-gh", "name": "Carol Lee"})
    if path.startswith("/repos/acme/legacy/"):
        return Response(500, json={"message": "Server Error"})
    if path.startswith("/repos/acme/"):
        repo, endpoint = path.split("/")[3:5]
        if endpoint == "contributors":
            return Response(200, json=CONTRIBUTORS[repo])
        if endpoint == "languages":
            return Response(200, json={"Python": 1000} if repo == "flagship" else {})
        if endpoint == "commits" and params.get("per_page") == "1":
            if repo == "flagship":
                link = '<https://api.github.com/repositories/1/commits?per_page=1&page=42>; rel="last"'
                return Response(200, json=COMMITS[repo][:1], headers={"Link": link})
            return Response(200, json=[])
        if endpoint == "commits":
            return Response(200, json=COMMITS[repo])
    return Response(404, json={"message": "Not Found"})


async def _collect(settings: Settings):
    async with GitHubClient(page_delay=0) as gh:
        return await collect_metrics(gh, settings, now=NOW)


def test_primary_repositories_come_first() -> None:
    assert is_primary_repository({"name": "Flagship", "pushed_at": OLD}, ["flagship"], NOW)
    assert not is_primary_repository({"name": "legacy", "pushed_at": OLD}, ["flagship"], NOW)
    assert not is_primary_repository({"name": "legacy", "pushed_at": "garbage"}, [], NOW)

    ordered = order_repositories(REPOS, ["flagship"], NOW)
    assert [r["name"] for r in ordered] == ["flagship", "fresh", "legacy"]


def test_apply_scan_feeds_registry(settings: Settings) -> None:
    registry = ContributorRegistry()
    scan = RepositoryScan(
        metrics=repository_metrics({"name": "flagship"}),
        contributors=[{"login": "alice", "contributions": 2}, {"contributions": 9}],
        commits=COMMITS["flagship"],
    )

    emails = apply_scan(registry, scan, settings)

    assert emails == {"carol@example.com", "12345+bob@users.noreply.github.com"}
    assert registry.get("alice").contributions == 3
    assert registry.get("bob").contributions == 1
    assert registry.get("carol").pending_resolution is True


@pytest.mark.asyncio
@respx.mock
async def test_collect_metrics_end_to_end(settings: Settings) -> None:
    respx.route(host="api.github.com").mock(side_effect=fake_github)

    result = await _collect(settings)
    snapshot = result.snapshot
    stats = snapshot.stats

    assert snapshot.organization == "acme"
    assert snapshot.timestamp == "2024-05-01T00:00:00Z"
    assert [r.name for r in snapshot.repositories] == ["flagship", "fresh", "legacy"]

    assert stats.repositories == 3
    assert stats.stars == 13
    assert stats.forks == 4
    assert stats.total_commits == 42
    assert stats.lines_of_code == 80
    assert stats.languages == {"Python": 1000}

    legacy = snapshot.repositories[2]
    assert (legacy.contributors, legacy.commits, legacy.languages) == (0, 0, {})

    top = stats.contributors.top
    assert stats.contributors.total == 3
    assert [(c["canonical_login"], c["contributions"]) for c in top] == [
        ("alice", 14),
        ("bob", 6),
        ("carol", 3),
    ]
    carol = top[2]
    assert carol["verified_handle"] == "carol-gh"
    assert carol["verified_name"] == "Carol Lee"
    assert [a["login"] for a in carol["aliases"]] == ["carol-gh"]
    assert "email" not in carol
    assert "pending_resolution" not in carol

    processing = stats.coauthor_processing
    assert processing.total_coauthor_emails == 2
    assert processing.noreply_github_emails == 1
    assert processing.github_users_found == 1
    assert processing.duplicates_merged == 1
    assert processing.total_aliases_merged == 1


@pytest.mark.asyncio
@respx.mock
async def test_collect_metrics_is_deterministic(settings: Settings) -> None:
    respx.route(host="api.github.com").mock(side_effect=fake_github)

    first = await _collect(settings)
    second = await _collect(settings.model_copy(update={"repo_fan_out": 3}))

    assert first.snapshot.model_dump() == second.snapshot.model_dump()
    assert [r.to_output() for r in first.registry.ranked()] == [
        r.to_output() for r in second.registry.ranked()
    ]


@pytest.mark.asyncio
@respx.mock
async def test_strict_mode_ignores_mentions(settings: Settings) -> None:
    respx.route(host="api.github.com").mock(side_effect=fake_github)
    mention = {"author": None, "commit": {"message": "Pair session with @dave-x"}}
    COMMITS["fresh"].append(mention)
    try:
        loose = await _collect(settings)
        strict = await _collect(settings.model_copy(update={"coauthor_strictness": CoauthorStrictness.STRICT}))
    finally:
        COMMITS["fresh"].remove(mention)

    assert "dave-x" in loose.registry
    assert "dave-x" not in strict.registry


@pytest.mark.asyncio
@respx.mock
async def test_empty_repository_does_not_abort_run(settings: Settings) -> None:
    empty = {"name": "empty", "stargazers_count": 3, "pushed_at": OLD}

    def with_empty_repo(request: Request) -> Response:
        path = request.url.path
        if path == "/orgs/acme/repos":
            return Response(200, json=REPOS + [empty])
        if path == "/repos/acme/empty/contributors":
            return Response(204)
        if path == "/repos/acme/empty/commits":
            return Response(409, json={"message": "Git Repository is empty."})
        if path == "/repos/acme/empty/languages":
            return Response(200, json={})
        return fake_github(request)

    respx.route(host="api.github.com").mock(side_effect=with_empty_repo)

    snapshot = (await _collect(settings)).snapshot

    assert [r.name for r in snapshot.repositories] == ["flagship", "fresh", "legacy", "empty"]
    repo = snapshot.repositories[3]
    assert (repo.stars, repo.contributors, repo.commits) == (3, 0, 0)
    assert snapshot.stats.stars == 16
    assert snapshot.stats.contributors.total == 3


@pytest.mark.asyncio
@respx.mock
async def test_unexpected_scan_error_zeroes_only_that_repository(
    settings: Settings, monkeypatch: pytest.MonkeyPatch
) -> None:
    respx.route(host="api.github.com").mock(side_effect=fake_github)
    real_scan = metrics_collector.scan_repository

    async def scan_or_fail(gh, settings, repo):
        if repo["name"] == "fresh":
            raise KeyError("unexpected payload")
        return await real_scan(gh, settings, repo)

    monkeypatch.setattr(metrics_collector, "scan_repository", scan_or_fail)

    snapshot = (await _collect(settings.model_copy(update={"repo_fan_out": 3}))).snapshot

    assert [r.name for r in snapshot.repositories] == ["flagship", "fresh", "legacy"]
    fresh = snapshot.repositories[1]
    assert (fresh.stars, fresh.contributors, fresh.commits) == (2, 0, 0)
    assert snapshot.stats.total_commits == 42
