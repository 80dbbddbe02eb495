"""Collect organization metrics and the canonical contributor list.

Repositories are fetched in small concurrent batches; everything fetched is
then applied to the contributor registry synchronously, in processing order.
After the scan, pending co-author emails go to the identity resolver and the
deduplication pass produces the final contributor list.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

import httpx

from orgpulse.config import Settings
from orgpulse.models.metrics import (
    CoauthorProcessingStats,
    ContributorSummary,
    MetricsSnapshot,
    OrganizationStats,
    RepositoryMetrics,
)
from orgpulse.services.coauthor_extractor import extract_coauthors
from orgpulse.services.contributor_registry import ContributorRegistry
from orgpulse.services.deduplication_service import DeduplicationReport, deduplicate
from orgpulse.services.github_client import GitHubAPIError, GitHubClient
from orgpulse.services.identity_resolver import IdentityResolver
from orgpulse.services.lines_of_code import estimate_lines

log = logging.getLogger(__name__)

_PRIVATE_OUTPUT_FIELDS = ("email", "pending_resolution", "matched_by")


@dataclass
class RepositoryScan:
    metrics: RepositoryMetrics
    contributors: list[dict] = field(default_factory=list)
    commits: list[dict] = field(default_factory=list)


@dataclass
class CollectionResult:
    snapshot: MetricsSnapshot
    registry: ContributorRegistry
    deduplication: DeduplicationReport


def _now_utc_label(now: datetime) -> str:
    return now.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _parse_timestamp(value: Any) -> Optional[datetime]:
    raw = str(value or "").strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_primary_repository(repo: dict, flagship: Iterable[str], now: datetime, recent_days: int = 30) -> bool:
    name = str(repo.get("name") or "")
    if name.lower() in {f.lower() for f in flagship}:
        return True
    pushed = _parse_timestamp(repo.get("pushed_at"))
    return pushed is not None and pushed > now - timedelta(days=recent_days)


def order_repositories(
    repos: list[dict], flagship: Iterable[str], now: datetime, recent_days: int = 30
) -> list[dict]:
    """Primary repositories (flagship or recently pushed) first, listing order otherwise kept."""
    flagship = list(flagship)
    primary = [r for r in repos if is_primary_repository(r, flagship, now, recent_days)]
    rest = [r for r in repos if not is_primary_repository(r, flagship, now, recent_days)]
    return primary + rest


def repository_metrics(repo: dict) -> RepositoryMetrics:
    return RepositoryMetrics(
        name=str(repo.get("name") or ""),
        description=repo.get("description"),
        url=repo.get("html_url"),
        is_fork=bool(repo.get("fork")),
        stars=int(repo.get("stargazers_count") or 0),
        forks=int(repo.get("forks_count") or 0),
        watchers=int(repo.get("watchers_count") or 0),
        open_issues=int(repo.get("open_issues_count") or 0),
        pushed_at=repo.get("pushed_at"),
    )


async def scan_repository(gh: GitHubClient, settings: Settings, repo: dict) -> RepositoryScan:
    """Fetch one repository's data. Failures zero the affected parts, never raise."""
    org = settings.organization
    metrics = repository_metrics(repo)
    name = metrics.name
    scan = RepositoryScan(metrics=metrics)
    is_flagship = name.lower() in {f.lower() for f in settings.flagship_repos}

    scan.contributors = await gh.list_contributors(org, name)
    metrics.contributors = len(scan.contributors)

    try:
        count = await gh.count_commits(org, name)
        if count:
            metrics.commits = count
    except (GitHubAPIError, httpx.HTTPError) as e:
        log.warning("Couldn't get commit count from pagination for %s: %s", name, e)

    max_pages = settings.flagship_commit_pages if is_flagship else settings.commit_pages
    scan.commits = await gh.list_commits(org, name, max_pages=max_pages)
    if not metrics.commits:
        metrics.commits = len(scan.commits)

    try:
        metrics.languages = await gh.list_languages(org, name)
    except (GitHubAPIError, httpx.HTTPError) as e:
        log.warning("Error getting languages for %s: %s", name, e)
        metrics.languages = {}
    metrics.lines_of_code = estimate_lines(metrics.languages)

    log.info(
        "%s: %d contributors, %d commits, ~%d lines of code",
        name,
        metrics.contributors,
        metrics.commits,
        metrics.lines_of_code,
    )
    return scan


async def _scan_or_empty(gh: GitHubClient, settings: Settings, repo: dict) -> RepositoryScan:
    try:
        return await scan_repository(gh, settings, repo)
    except Exception as e:
        log.warning("Error processing repository %s, keeping listing data only: %s", repo.get("name"), e)
        return RepositoryScan(metrics=repository_metrics(repo))


def apply_scan(registry: ContributorRegistry, scan: RepositoryScan, settings: Settings) -> set[str]:
    """Feed one repository's contributors and commits into the registry.

    Returns the co-author emails seen in this repository.
    """
    repo = scan.metrics.name
    for contributor in scan.contributors:
        login = contributor.get("login")
        if not login:
            log.debug("Skipping contributor without login in %s", repo)
            continue
        registry.upsert_direct(
            login,
            contributor.get("avatar_url"),
            contributor.get("html_url"),
            int(contributor.get("contributions") or 0),
            repo,
        )

    emails: set[str] = set()
    commits_with_coauthors = 0
    for commit in scan.commits:
        registry.upsert_commit_author(commit.get("author"), repo)
        message = (commit.get("commit") or {}).get("message")
        candidates = extract_coauthors(
            message, settings.coauthor_strictness, settings.noreply_email_domain
        )
        if candidates:
            commits_with_coauthors += 1
        for candidate in candidates:
            emails.add(candidate.email.lower())
            registry.upsert_heuristic(candidate, repo)

    if commits_with_coauthors:
        log.info("%s: co-authors found in %d commits", repo, commits_with_coauthors)
    return emails


def _contributor_output(record) -> dict:
    data = record.to_output()
    for key in _PRIVATE_OUTPUT_FIELDS:
        data.pop(key, None)
    return data


async def collect_metrics(
    gh: GitHubClient,
    settings: Settings,
    now: Optional[datetime] = None,
) -> CollectionResult:
    now = now or datetime.now(timezone.utc)
    org = settings.organization
    log.info("Starting metrics collection for %s", org)

    try:
        core = await gh.get_rate_limit()
        log.info("Rate limit: %s/%s requests remaining", core.get("remaining"), core.get("limit"))
    except (GitHubAPIError, httpx.HTTPError) as e:
        log.warning("Could not check rate limit: %s", e)

    repos = await gh.list_org_repos(org)
    log.info("Found %d repositories", len(repos))
    ordered = order_repositories(repos, settings.flagship_repos, now, settings.recent_push_days)

    registry = ContributorRegistry(settings.first_party_email_domains, settings.noreply_email_domain)
    stats = OrganizationStats(repositories=len(ordered))
    repositories: list[RepositoryMetrics] = []
    coauthor_emails: set[str] = set()

    fan_out = max(1, min(settings.repo_fan_out, 3))
    for start in range(0, len(ordered), fan_out):
        batch = ordered[start : start + fan_out]
        scans = await asyncio.gather(*(_scan_or_empty(gh, settings, repo) for repo in batch))
        for scan in scans:
            coauthor_emails |= apply_scan(registry, scan, settings)
            stats.add_repository(scan.metrics)
            repositories.append(scan.metrics)
        if start + fan_out < len(ordered) and settings.repo_batch_delay:
            await asyncio.sleep(settings.repo_batch_delay)

    resolver = IdentityResolver(gh, settings)
    verified = await resolver.resolve_batch(registry.pending_emails())
    registry.apply_verified(verified)

    report = deduplicate(registry, settings.avatar_host)

    ranked = registry.ranked()
    stats.contributors = ContributorSummary(
        total=len(ranked),
        top=[_contributor_output(r) for r in ranked[: settings.top_contributors]],
    )
    stats.coauthor_processing = CoauthorProcessingStats(
        total_coauthor_emails=len(coauthor_emails),
        github_users_found=len(verified),
        duplicates_merged=report.merged_sets,
        noreply_github_emails=sum(1 for e in coauthor_emails if e.endswith("@" + settings.noreply_email_domain)),
        total_aliases_merged=len(report.absorbed_logins),
    )

    snapshot = MetricsSnapshot(
        organization=org,
        timestamp=_now_utc_label(now),
        stats=stats,
        repositories=repositories,
    )
    log.info(
        "Found %d unique contributors, %d commits, %d lines of code (%d API requests)",
        stats.contributors.total,
        stats.total_commits,
        stats.lines_of_code,
        gh.total_requests,
    )
    return CollectionResult(snapshot=snapshot, registry=registry, deduplication=report)
