"""In-memory contributor registry keyed by canonical login.

The registry is owned by a single collection run and threaded explicitly
through the scan, verification and deduplication phases.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, Mapping, Optional

from orgpulse.config import DEFAULT_FIRST_PARTY_EMAIL_DOMAINS, DEFAULT_NOREPLY_EMAIL_DOMAIN
from orgpulse.models.contributor import CandidateIdentity, ContributorRecord, VerifiedIdentity
from orgpulse.services.identity_normalizer import normalize_identity

log = logging.getLogger(__name__)

IDENTICON_URL = "https://github.com/identicons/{handle}.png"


class ContributorRegistry:
    def __init__(
        self,
        first_party_domains: Iterable[str] = DEFAULT_FIRST_PARTY_EMAIL_DOMAINS,
        noreply_domain: str = DEFAULT_NOREPLY_EMAIL_DOMAIN,
    ) -> None:
        self._records: dict[str, ContributorRecord] = {}
        self._first_party_domains = set(first_party_domains)
        self._noreply_domain = noreply_domain

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, login: object) -> bool:
        return isinstance(login, str) and login.lower() in self._records

    def __iter__(self) -> Iterator[ContributorRecord]:
        return iter(list(self._records.values()))

    def get(self, login: str) -> Optional[ContributorRecord]:
        return self._records.get(login.lower())

    def logins(self) -> list[str]:
        return list(self._records.keys())

    def records(self) -> list[ContributorRecord]:
        return list(self._records.values())

    def add(self, record: ContributorRecord) -> ContributorRecord:
        """Insert a fully built record. The canonical login must be new."""
        key = record.canonical_login.strip().lower()
        if not key:
            raise ValueError("canonical_login must not be empty")
        if key in self._records:
            raise ValueError(f"duplicate canonical_login {key!r}")
        record.canonical_login = key
        self._records[key] = record
        return record

    def remove(self, login: str) -> ContributorRecord:
        return self._records.pop(login.lower())

    def find_by_email(self, email: str | None) -> Optional[ContributorRecord]:
        if not email:
            return None
        needle = email.strip().lower()
        for record in self._records.values():
            if record.email and record.email.lower() == needle:
                return record
        return None

    def upsert_direct(
        self,
        login: str,
        avatar_url: Optional[str],
        html_url: Optional[str],
        contribution_delta: int,
        repo: str,
    ) -> Optional[ContributorRecord]:
        """Add a contributor listed by the upstream API. Repeated calls add up."""
        display = (login or "").strip()
        if not display:
            return None
        delta = max(0, int(contribution_delta or 0))
        record = self.get(display)
        if record is None:
            record = self.add(
                ContributorRecord(
                    canonical_login=display.lower(),
                    display_login=display,
                    avatar_url=avatar_url,
                    html_url=html_url,
                    pending_resolution=False,
                )
            )
        record.contributions += delta
        record.repositories.add(repo)
        return record

    def upsert_commit_author(self, author: Mapping | None, repo: str) -> Optional[ContributorRecord]:
        """Count one contribution for a commit whose GitHub author is known."""
        if not isinstance(author, Mapping):
            return None
        login = author.get("login")
        if not login:
            return None
        return self.upsert_direct(login, author.get("avatar_url"), author.get("html_url"), 1, repo)

    def upsert_heuristic(self, candidate: CandidateIdentity, repo: str) -> Optional[ContributorRecord]:
        """Merge a parsed co-author into the registry; drop it if no handle can be derived."""
        handle = normalize_identity(
            candidate.email,
            candidate.name,
            first_party_domains=self._first_party_domains,
            noreply_domain=self._noreply_domain,
        )
        if not handle:
            log.debug("Dropping co-author candidate without usable identity: %r", candidate)
            return None

        record = self.get(handle) or self.find_by_email(candidate.email)
        if record is not None:
            record.contributions += 1
            record.repositories.add(repo)
            return record

        email = candidate.email.strip() or None
        display = candidate.name.strip() or (email.split("@", 1)[0] if email else handle)
        record = self.add(
            ContributorRecord(
                canonical_login=handle,
                display_login=display,
                email=email,
                avatar_url=IDENTICON_URL.format(handle=handle),
                html_url=f"mailto:{email}" if email else None,
                contributions=1,
                repositories={repo},
                pending_resolution=email is not None,
            )
        )
        log.debug("Added co-author %s as contributor %s", email, handle)
        return record

    def pending_emails(self) -> set[str]:
        return {
            record.email.lower()
            for record in self._records.values()
            if record.pending_resolution and record.email
        }

    def apply_verified(self, verified: Mapping[str, VerifiedIdentity]) -> int:
        """Upgrade pending records whose email resolved to a GitHub account."""
        lookup = {email.lower(): identity for email, identity in verified.items()}
        updated = 0
        for record in self._records.values():
            if not (record.pending_resolution and record.email):
                continue
            identity = lookup.get(record.email.lower())
            if identity is None:
                continue
            record.verified_handle = identity.login
            record.verified_name = identity.name
            record.matched_by = identity.found_by
            if identity.avatar_url:
                record.avatar_url = identity.avatar_url
            if identity.html_url:
                record.html_url = identity.html_url
            record.pending_resolution = False
            updated += 1
            log.info("Resolved contributor %r to GitHub user %s", record.canonical_login, identity.login)
        return updated

    def total_contributions(self) -> int:
        return sum(record.contributions for record in self._records.values())

    def ranked(self, top_n: Optional[int] = None) -> list[ContributorRecord]:
        """Records by contributions descending; ties keep registry order."""
        ordered = sorted(self._records.values(), key=lambda r: -r.contributions)
        if top_n is None:
            return ordered
        return ordered[: max(0, int(top_n))]
