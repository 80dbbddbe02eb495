"""Runtime settings for a collection run, read from the environment."""

from __future__ import annotations

import os
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_FIRST_PARTY_EMAIL_DOMAINS = {
    "users.noreply.github.com",
    "github.com",
}

DEFAULT_NOREPLY_EMAIL_DOMAIN = "users.noreply.github.com"
DEFAULT_AVATAR_HOST = "avatars.githubusercontent.com"


class CoauthorStrictness(str, Enum):
    STRICT = "strict"  # marker-based strategies only
    STANDARD = "standard"  # markers + bare emails
    LOOSE = "loose"  # markers + bare emails + @mentions


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def _env_int(name: str, default: int, minimum: int = 0, maximum: Optional[int] = None) -> int:
    raw = _env_str(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    value = max(minimum, value)
    if maximum is not None:
        value = min(maximum, value)
    return value


def _env_float(name: str, default: float) -> float:
    raw = _env_str(name)
    if not raw:
        return default
    try:
        return max(0.0, float(raw))
    except ValueError:
        return default


def _env_set(name: str, default: set[str]) -> set[str]:
    raw = _env_str(name)
    if not raw:
        return set(default)
    values = {chunk.strip().lower() for chunk in raw.split(",") if chunk.strip()}
    return values or set(default)


def _env_list(name: str) -> list[str]:
    raw = _env_str(name)
    return [chunk.strip() for chunk in raw.split(",") if chunk.strip()]


def _github_token() -> Optional[str]:
    token = _env_str("GITHUB_TOKEN") or _env_str("GH_TOKEN")
    return token or None


def _strictness() -> CoauthorStrictness:
    raw = _env_str("COAUTHOR_STRICTNESS", CoauthorStrictness.LOOSE.value).lower()
    try:
        return CoauthorStrictness(raw)
    except ValueError:
        return CoauthorStrictness.LOOSE


class Settings(BaseModel):
    organization: str
    token: Optional[str] = None
    api_url: str = "https://api.github.com"
    output_dir: str = "data"

    flagship_repos: list[str] = Field(default_factory=list)
    recent_push_days: int = 30
    top_contributors: int = 20
    history_limit: int = 100

    repo_fan_out: int = 1
    commit_pages: int = 1
    flagship_commit_pages: int = 5
    page_delay: float = 0.5
    repo_batch_delay: float = 1.0

    resolver_batch_size: int = 5
    resolver_request_delay: float = 1.0
    resolver_batch_delay: float = 3.0
    rate_limit_floor: int = 5
    rate_limit_warning: int = 20

    coauthor_strictness: CoauthorStrictness = CoauthorStrictness.LOOSE
    first_party_email_domains: set[str] = Field(
        default_factory=lambda: set(DEFAULT_FIRST_PARTY_EMAIL_DOMAINS)
    )
    noreply_email_domain: str = DEFAULT_NOREPLY_EMAIL_DOMAIN
    avatar_host: str = DEFAULT_AVATAR_HOST

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        """Build settings from environment variables; keyword overrides win."""
        values = {
            "organization": _env_str("ORGANIZATION"),
            "token": _github_token(),
            "api_url": _env_str("GITHUB_API_URL", "https://api.github.com"),
            "output_dir": _env_str("OUTPUT_DIR", "data"),
            "flagship_repos": _env_list("FLAGSHIP_REPOS"),
            "recent_push_days": _env_int("RECENT_PUSH_DAYS", 30),
            "top_contributors": _env_int("TOP_CONTRIBUTORS", 20, minimum=1),
            "history_limit": _env_int("HISTORY_LIMIT", 100, minimum=1),
            "repo_fan_out": _env_int("REPO_FAN_OUT", 1, minimum=1, maximum=3),
            "commit_pages": _env_int("COMMIT_PAGES", 1, minimum=1),
            "flagship_commit_pages": _env_int("FLAGSHIP_COMMIT_PAGES", 5, minimum=1),
            "page_delay": _env_float("PAGE_DELAY", 0.5),
            "repo_batch_delay": _env_float("REPO_BATCH_DELAY", 1.0),
            "resolver_batch_size": _env_int("RESOLVER_BATCH_SIZE", 5, minimum=1),
            "resolver_request_delay": _env_float("RESOLVER_REQUEST_DELAY", 1.0),
            "resolver_batch_delay": _env_float("RESOLVER_BATCH_DELAY", 3.0),
            "rate_limit_floor": _env_int("RATE_LIMIT_FLOOR", 5),
            "rate_limit_warning": _env_int("RATE_LIMIT_WARNING", 20),
            "coauthor_strictness": _strictness(),
            "first_party_email_domains": _env_set(
                "FIRST_PARTY_EMAIL_DOMAINS", DEFAULT_FIRST_PARTY_EMAIL_DOMAINS
            ),
            "noreply_email_domain": _env_str("NOREPLY_EMAIL_DOMAIN", DEFAULT_NOREPLY_EMAIL_DOMAIN).lower(),
            "avatar_host": _env_str("AVATAR_HOST", DEFAULT_AVATAR_HOST).lower(),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        settings = cls(**values)
        if not settings.organization:
            raise ValueError("ORGANIZATION is required")
        return settings
