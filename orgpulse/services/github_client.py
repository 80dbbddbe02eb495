"""Async GitHub REST client used by the collector.

REST wrapper with:
- optional token auth (GITHUB_TOKEN)
- rate-limit budget tracking from response headers; pagination stops early
  when the budget runs low instead of failing the run
- basic ETag conditional requests + in-memory response cache
- "Link: rel=last" parsing to count items without fetching them all
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from typing import Any, Optional

import httpx

log = logging.getLogger(__name__)

_LAST_PAGE_RE = re.compile(r"<([^>]+)>;\s*rel=\"last\"")


class GitHubAPIError(RuntimeError):
    def __init__(self, status_code: int, url: str, body: str = "") -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(f"GitHub API error {status_code} for {url}: {body[:200]}")


def parse_last_page(link_header: str | None) -> Optional[int]:
    """Return the page number of the rel="last" link, if any."""
    if not link_header:
        return None
    match = _LAST_PAGE_RE.search(link_header)
    if not match:
        return None
    page = httpx.URL(match.group(1)).params.get("page")
    try:
        return int(page) if page is not None else None
    except ValueError:
        return None


def _json_body(r: httpx.Response, url) -> Any:
    """Decoded JSON body; None for 204 No Content or an empty body (empty repositories)."""
    if r.status_code == 204 or not r.content:
        return None
    try:
        return r.json()
    except ValueError as e:
        raise GitHubAPIError(r.status_code, str(url), f"invalid JSON body: {e}") from e


class GitHubClient:
    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = "https://api.github.com",
        user_agent: str = "orgpulse/1.0",
        timeout: float = 20.0,
        page_delay: float = 0.5,
        rate_limit_floor: int = 5,
        rate_limit_warning: int = 20,
    ) -> None:
        env_token = os.getenv("GITHUB_TOKEN")
        if not env_token:
            env_token = os.getenv("GH_TOKEN")
        if env_token:
            env_token = env_token.strip() or None
        self._token = token or env_token
        self._base_url = base_url.rstrip("/")
        self._page_delay = page_delay
        self._rate_limit_floor = rate_limit_floor
        self._rate_limit_warning = rate_limit_warning
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": user_agent,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        self._client = httpx.AsyncClient(timeout=timeout, headers=headers)

        self.remaining: Optional[int] = None
        self.reset_at: Optional[int] = None
        self.total_requests = 0

        # Per-run caches
        self._etag_by_url: dict[str, str] = {}
        self._json_cache_by_url: dict[str, Any] = {}

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def budget_exhausted(self) -> bool:
        return self.remaining is not None and self.remaining <= self._rate_limit_floor

    def _track_rate_limit(self, r: httpx.Response) -> None:
        remaining = r.headers.get("X-RateLimit-Remaining")
        reset = r.headers.get("X-RateLimit-Reset")
        try:
            rem_i = int(remaining) if remaining is not None else None
            reset_i = int(reset) if reset is not None else None
        except ValueError:
            rem_i, reset_i = None, None

        if rem_i is not None:
            self.remaining = rem_i
            self.reset_at = reset_i
            if rem_i < self._rate_limit_warning:
                log.warning("GitHub rate limit running low: %d requests remaining", rem_i)

    def _url(self, path: str, params: Optional[dict[str, Any]] = None) -> str:
        url = path if path.startswith("http") else f"{self._base_url}{path}"
        if params:
            url = str(httpx.URL(url).copy_merge_params(params))
        return url

    async def _get(self, url: str, headers: Optional[dict[str, str]] = None) -> httpx.Response:
        self.total_requests += 1
        log.debug("GET %s", url)
        r = await self._client.get(url, headers=headers)
        self._track_rate_limit(r)
        return r

    async def get_response(self, path: str, params: Optional[dict[str, Any]] = None) -> httpx.Response:
        """GET without caching; raises GitHubAPIError on 4xx/5xx."""
        url = self._url(path, params)
        r = await self._get(url)
        if r.status_code >= 400:
            raise GitHubAPIError(r.status_code, url, r.text)
        return r

    async def get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """GET JSON for a path or full URL. Uses ETag conditional requests when possible."""
        url = self._url(path, params)

        extra_headers: dict[str, str] = {}
        etag = self._etag_by_url.get(url)
        if etag:
            extra_headers["If-None-Match"] = etag

        r = await self._get(url, headers=extra_headers)

        if r.status_code == 304:
            if url in self._json_cache_by_url:
                return self._json_cache_by_url[url]
            # If cache was lost, retry without condition.
            r = await self._get(url)

        if r.status_code >= 400:
            raise GitHubAPIError(r.status_code, url, r.text)

        new_etag = r.headers.get("ETag")
        if new_etag:
            self._etag_by_url[url] = new_etag

        data = _json_body(r, url)
        self._json_cache_by_url[url] = data
        return data

    async def paginate(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        per_page: int = 100,
        max_pages: int = 10,
    ) -> list[dict]:
        """Collect list pages until a short page, the page cap, an error, or a low rate budget."""
        out: list[dict] = []
        for page in range(1, max_pages + 1):
            if self.budget_exhausted:
                log.warning("Stopping pagination of %s: rate limit budget at %s", path, self.remaining)
                break
            query = dict(params or {})
            query.update({"per_page": per_page, "page": page})
            try:
                data = await self.get_json(path, query)
            except (GitHubAPIError, httpx.HTTPError) as e:
                log.warning("Error fetching page %d of %s: %s", page, path, e)
                break
            if not isinstance(data, list):
                break
            out.extend(data)
            if len(data) < per_page:
                break
            if page == max_pages:
                log.info("Reached pagination limit (%d pages) for %s", max_pages, path)
                break
            if self._page_delay:
                await asyncio.sleep(self._page_delay)
        return out

    async def get_rate_limit(self) -> dict:
        r = await self.get_response("/rate_limit")
        data = _json_body(r, r.request.url)
        resources = data.get("resources") if isinstance(data, dict) else None
        core = (resources or {}).get("core") or {}
        if "remaining" in core:
            self.remaining = int(core["remaining"])
            self.reset_at = int(core.get("reset") or 0) or None
        return core

    async def list_org_repos(self, org: str, max_pages: int = 10) -> list[dict]:
        return await self.paginate(
            f"/orgs/{org}/repos", {"sort": "updated", "direction": "desc"}, max_pages=max_pages
        )

    async def list_contributors(self, owner: str, repo: str, per_page: int = 100, max_pages: int = 5) -> list[dict]:
        """List contributors. Caps pages to avoid runaway API usage."""
        return await self.paginate(
            f"/repos/{owner}/{repo}/contributors", {"anon": "false"}, per_page=per_page, max_pages=max_pages
        )

    async def list_commits(self, owner: str, repo: str, per_page: int = 100, max_pages: int = 1) -> list[dict]:
        return await self.paginate(f"/repos/{owner}/{repo}/commits", per_page=per_page, max_pages=max_pages)

    async def count_commits(self, owner: str, repo: str) -> Optional[int]:
        """Total commit count from the rel="last" link of a one-item page."""
        r = await self.get_response(f"/repos/{owner}/{repo}/commits", {"per_page": 1})
        last = parse_last_page(r.headers.get("Link"))
        if last is not None:
            return last
        data = _json_body(r, r.request.url)
        return len(data) if isinstance(data, list) else None

    async def list_languages(self, owner: str, repo: str) -> dict[str, int]:
        data = await self.get_json(f"/repos/{owner}/{repo}/languages")
        if not isinstance(data, dict):
            return {}
        return {str(k): int(v or 0) for k, v in data.items()}

    async def get_user(self, login: str) -> dict:
        data = await self.get_json(f"/users/{login}")
        return data if isinstance(data, dict) else {}

    async def search_users_by_email(self, email: str) -> list[dict]:
        data = await self.get_json("/search/users", {"q": f"{email} in:email"})
        items = data.get("items") if isinstance(data, dict) else None
        return items if isinstance(items, list) else []
