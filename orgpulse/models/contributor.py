"""Contributor identity models.

A ContributorRecord is one resolved identity in the registry. CandidateIdentity
is the short-lived output of commit message parsing; VerifiedIdentity is what a
GitHub user lookup returns.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class MatchType(str, Enum):
    EMAIL = "email"
    GITHUB_LOGIN = "github_login"
    SIMILAR_NAME = "similar_name"


class CandidateIdentity(BaseModel):
    """Co-author attribution parsed out of a commit message."""

    name: str = ""
    email: str
    source_heuristic: str


class VerifiedIdentity(BaseModel):
    """GitHub account confirmed for an email address."""

    login: str
    avatar_url: Optional[str] = None
    html_url: Optional[str] = None
    name: Optional[str] = None
    found_by: str  # "noreply" | "email_search"


class ContributorAlias(BaseModel):
    login: str
    match_type: MatchType
    contributions: int
    repositories: list[str] = Field(default_factory=list)


class ContributorRecord(BaseModel):
    canonical_login: str  # lowercased registry key
    display_login: str
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    html_url: Optional[str] = None
    contributions: int = Field(default=0, ge=0)
    repositories: set[str] = Field(default_factory=set)
    verified_handle: Optional[str] = None
    verified_name: Optional[str] = None
    matched_by: Optional[str] = None
    aliases: list[ContributorAlias] = Field(default_factory=list)
    pending_resolution: bool = False

    @property
    def is_verified(self) -> bool:
        return bool(self.verified_handle)

    def to_output(self) -> dict:
        """JSON-ready view with repositories sorted for stable output."""
        data = self.model_dump(mode="json")
        data["repositories"] = sorted(self.repositories)
        return data


class MatchSet(BaseModel):
    """Registry logins believed, by one criterion, to be the same person."""

    match_type: MatchType
    key: str
    logins: list[str]
