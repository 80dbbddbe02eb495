"""Collect GitHub organization metrics into JSON snapshot + history files.

Usage:
  orgpulse-collect [--org NAME] [--output-dir DIR] [--top N] [-v]

Notes:
- ORGANIZATION and GITHUB_TOKEN come from the environment (or a .env file)
- exits 0 on success, including partial data; 1 when setup fails
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

from dotenv import load_dotenv

from orgpulse.adapters.snapshot_store import SnapshotStore
from orgpulse.config import Settings
from orgpulse.services.github_client import GitHubClient
from orgpulse.services.metrics_collector import collect_metrics

log = logging.getLogger(__name__)


async def run(settings: Settings, store: SnapshotStore) -> None:
    async with GitHubClient(
        token=settings.token,
        base_url=settings.api_url,
        page_delay=settings.page_delay,
        rate_limit_floor=settings.rate_limit_floor,
        rate_limit_warning=settings.rate_limit_warning,
    ) as gh:
        result = await collect_metrics(gh, settings)

    store.write_snapshot(result.snapshot)
    store.write_contributors(result.registry.ranked())
    store.write_deduplication_report(result.deduplication.match_sets)
    store.append_history(result.snapshot.history_entry())


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Collect GitHub organization metrics")
    ap.add_argument("--org", default=None, help="Organization login (default: $ORGANIZATION)")
    ap.add_argument("--output-dir", default=None, help="Directory for JSON output (default: $OUTPUT_DIR or data)")
    ap.add_argument("--top", type=int, default=None, help="Number of top contributors in the snapshot")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    load_dotenv()

    try:
        settings = Settings.from_env(
            organization=args.org,
            output_dir=args.output_dir,
            top_contributors=args.top,
        )
        store = SnapshotStore(settings.output_dir, history_limit=settings.history_limit)
        store.prepare()
    except (ValueError, OSError) as e:
        log.error("Setup failed: %s", e)
        return 1

    log.info("Using GitHub token: %s", "provided" if settings.token else "not provided")
    asyncio.run(run(settings, store))
    return 0


if __name__ == "__main__":
    sys.exit(main())
