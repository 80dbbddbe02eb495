"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from orgpulse.config import Settings  # noqa: E402

pytest_plugins = ("pytest_asyncio",)

_ENV_KEYS = (
    "ORGANIZATION",
    "GITHUB_TOKEN",
    "GH_TOKEN",
    "OUTPUT_DIR",
    "FLAGSHIP_REPOS",
    "TOP_CONTRIBUTORS",
    "REPO_FAN_OUT",
    "COAUTHOR_STRICTNESS",
    "FIRST_PARTY_EMAIL_DOMAINS",
    "NOREPLY_EMAIL_DOMAIN",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings for tests: no sleeps, output under tmp_path."""
    return Settings(
        organization="acme",
        output_dir=str(tmp_path / "data"),
        flagship_repos=["flagship"],
        page_delay=0.0,
        repo_batch_delay=0.0,
        resolver_request_delay=0.0,
        resolver_batch_delay=0.0,
    )
