"""Look up GitHub accounts for co-author email addresses.

A miss or a failed request is not an error: the email stays unresolved and
its record keeps ``pending_resolution``. Lookups are throttled in small
batches, and the remaining ones are skipped once the client's rate budget
runs low.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Iterable, Optional

import httpx

from orgpulse.config import DEFAULT_NOREPLY_EMAIL_DOMAIN, Settings
from orgpulse.models.contributor import VerifiedIdentity
from orgpulse.services.github_client import GitHubAPIError, GitHubClient

log = logging.getLogger(__name__)


def noreply_handle(email: str, noreply_domain: str = DEFAULT_NOREPLY_EMAIL_DOMAIN) -> Optional[str]:
    """Handle encoded in a no-reply address (``[id+]handle@<noreply domain>``)."""
    match = re.match(
        r"^(?:\d+\+)?([A-Za-z0-9-]+)@" + re.escape(noreply_domain) + r"$",
        email.strip(),
        re.IGNORECASE,
    )
    return match.group(1) if match else None


class IdentityResolver:
    def __init__(self, client: GitHubClient, settings: Settings) -> None:
        self._client = client
        self._noreply_domain = settings.noreply_email_domain
        self._batch_size = max(1, settings.resolver_batch_size)
        self._request_delay = settings.resolver_request_delay
        self._batch_delay = settings.resolver_batch_delay

    async def _from_noreply(self, email: str, handle: str) -> Optional[VerifiedIdentity]:
        try:
            user = await self._client.get_user(handle)
        except (GitHubAPIError, httpx.HTTPError) as e:
            log.info("No-reply lookup for %s (%s) failed, falling back to search: %s", email, handle, e)
            return None
        login = user.get("login") or handle
        return VerifiedIdentity(
            login=login,
            avatar_url=user.get("avatar_url"),
            html_url=user.get("html_url"),
            name=user.get("name") or login,
            found_by="noreply",
        )

    async def _from_search(self, email: str) -> Optional[VerifiedIdentity]:
        try:
            items = await self._client.search_users_by_email(email)
        except (GitHubAPIError, httpx.HTTPError) as e:
            log.info("Email search for %s failed: %s", email, e)
            return None
        if not items:
            log.debug("No GitHub user found for %s", email)
            return None
        hit = items[0]
        login = hit.get("login")
        if not login:
            return None
        name = None
        try:
            details = await self._client.get_user(login)
            name = details.get("name")
        except (GitHubAPIError, httpx.HTTPError) as e:
            log.debug("Profile fetch for %s failed: %s", login, e)
        return VerifiedIdentity(
            login=login,
            avatar_url=hit.get("avatar_url"),
            html_url=hit.get("html_url"),
            name=name or login,
            found_by="email_search",
        )

    async def lookup(self, email: str) -> Optional[VerifiedIdentity]:
        if not email:
            return None
        handle = noreply_handle(email, self._noreply_domain)
        if handle:
            identity = await self._from_noreply(email, handle)
            if identity:
                return identity
        return await self._from_search(email)

    async def resolve_batch(self, emails: Iterable[str]) -> dict[str, VerifiedIdentity]:
        """Resolve each unique email; the result only holds emails that were found."""
        unique = sorted({e.strip().lower() for e in emails if e and e.strip()})
        results: dict[str, VerifiedIdentity] = {}
        log.info("Looking up GitHub users for %d co-author emails", len(unique))

        for start in range(0, len(unique), self._batch_size):
            batch = unique[start : start + self._batch_size]
            for email in batch:
                if self._client.budget_exhausted:
                    log.warning(
                        "Rate limit budget low, skipping %d remaining email lookups",
                        len(unique) - start - batch.index(email),
                    )
                    return results
                identity = await self.lookup(email)
                if identity:
                    results[email] = identity
                if self._request_delay:
                    await asyncio.sleep(self._request_delay)
            if start + self._batch_size < len(unique) and self._batch_delay:
                await asyncio.sleep(self._batch_delay)

        log.info("Found %d GitHub users from %d emails", len(results), len(unique))
        return results
