"""Pydantic models."""

from orgpulse.models.contributor import (
    CandidateIdentity,
    ContributorAlias,
    ContributorRecord,
    MatchSet,
    MatchType,
    VerifiedIdentity,
)
from orgpulse.models.metrics import (
    CoauthorProcessingStats,
    ContributorSummary,
    HistoryEntry,
    MetricsSnapshot,
    OrganizationStats,
    RepositoryMetrics,
)

__all__ = [
    "CandidateIdentity",
    "CoauthorProcessingStats",
    "ContributorAlias",
    "ContributorRecord",
    "ContributorSummary",
    "HistoryEntry",
    "MatchSet",
    "MatchType",
    "MetricsSnapshot",
    "OrganizationStats",
    "RepositoryMetrics",
    "VerifiedIdentity",
]
