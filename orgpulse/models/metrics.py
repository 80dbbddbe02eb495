"""Organization metrics snapshot and history models."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class RepositoryMetrics(BaseModel):
    name: str
    description: Optional[str] = None
    url: Optional[str] = None
    is_fork: bool = False
    stars: int = 0
    forks: int = 0
    watchers: int = 0
    open_issues: int = 0
    pushed_at: Optional[str] = None
    languages: dict[str, int] = Field(default_factory=dict)
    lines_of_code: int = 0
    commits: int = 0
    contributors: int = 0


class CoauthorProcessingStats(BaseModel):
    total_coauthor_emails: int = 0
    github_users_found: int = 0
    duplicates_merged: int = 0
    noreply_github_emails: int = 0
    total_aliases_merged: int = 0


class ContributorSummary(BaseModel):
    total: int = 0
    top: list[dict[str, Any]] = Field(default_factory=list)


class OrganizationStats(BaseModel):
    repositories: int = 0
    stars: int = 0
    forks: int = 0
    watchers: int = 0
    open_issues: int = 0
    total_commits: int = 0
    lines_of_code: int = 0
    contributors: ContributorSummary = Field(default_factory=ContributorSummary)
    languages: dict[str, int] = Field(default_factory=dict)
    coauthor_processing: CoauthorProcessingStats = Field(default_factory=CoauthorProcessingStats)

    def add_repository(self, repo: RepositoryMetrics) -> None:
        self.stars += repo.stars
        self.forks += repo.forks
        self.watchers += repo.watchers
        self.open_issues += repo.open_issues
        self.total_commits += repo.commits
        self.lines_of_code += repo.lines_of_code
        for language, size in repo.languages.items():
            self.languages[language] = self.languages.get(language, 0) + int(size)


class MetricsSnapshot(BaseModel):
    organization: str
    timestamp: str
    stats: OrganizationStats = Field(default_factory=OrganizationStats)
    repositories: list[RepositoryMetrics] = Field(default_factory=list)

    def history_entry(self) -> "HistoryEntry":
        return HistoryEntry(
            timestamp=self.timestamp,
            repositories=self.stats.repositories,
            stars=self.stats.stars,
            forks=self.stats.forks,
            contributors=self.stats.contributors.total,
            commits=self.stats.total_commits,
            lines_of_code=self.stats.lines_of_code,
        )


class HistoryEntry(BaseModel):
    """Compact per-run aggregate appended to the history file."""

    timestamp: str
    repositories: int = 0
    stars: int = 0
    forks: int = 0
    contributors: int = 0
    commits: int = 0
    lines_of_code: int = 0
