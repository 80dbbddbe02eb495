"""Flat JSON files written at the end of a collection run.

- github-metrics.json: current snapshot (aggregate, per-repo, top contributors)
- metrics-history.json: bounded list of compact per-run aggregates
- contributors-raw.json: full deduplicated contributor list
- deduplication-info.json: match-sets found by the deduplication pass
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from orgpulse.models.contributor import ContributorRecord, MatchSet
from orgpulse.models.metrics import HistoryEntry, MetricsSnapshot

log = logging.getLogger(__name__)

SNAPSHOT_FILE = "github-metrics.json"
HISTORY_FILE = "metrics-history.json"
CONTRIBUTORS_FILE = "contributors-raw.json"
DEDUPLICATION_FILE = "deduplication-info.json"


class SnapshotStore:
    def __init__(self, output_dir: str, history_limit: int = 100) -> None:
        self._output_dir = output_dir
        self._history_limit = max(1, int(history_limit))

    def path(self, name: str) -> str:
        return os.path.join(self._output_dir, name)

    def prepare(self) -> None:
        """Create the output directory. Failure here aborts the run."""
        os.makedirs(self._output_dir, exist_ok=True)

    def _write_json(self, name: str, data: Any) -> str:
        """Write atomically (temp file + replace) so readers never see a partial file."""
        target = self.path(name)
        tmp = target + ".tmp." + str(os.getpid())
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.write("\n")
            os.replace(tmp, target)
        finally:
            if os.path.isfile(tmp):
                try:
                    os.remove(tmp)
                except OSError:
                    pass
        return target

    def write_snapshot(self, snapshot: MetricsSnapshot) -> str:
        path = self._write_json(SNAPSHOT_FILE, snapshot.model_dump(mode="json"))
        log.info("Saved metrics to %s", path)
        return path

    def load_history(self) -> list[dict]:
        path = self.path(HISTORY_FILE)
        if not os.path.isfile(path):
            return []
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Error reading history file %s, starting fresh: %s", path, e)
            return []
        if not isinstance(data, list):
            log.warning("History file %s is not a list, starting fresh", path)
            return []
        return data

    def append_history(self, entry: HistoryEntry) -> list[dict]:
        history = self.load_history()
        history.append(entry.model_dump(mode="json"))
        history = history[-self._history_limit :]
        self._write_json(HISTORY_FILE, history)
        log.info("Updated metrics history (%d entries)", len(history))
        return history

    def write_contributors(self, records: list[ContributorRecord]) -> str:
        return self._write_json(CONTRIBUTORS_FILE, [r.to_output() for r in records])

    def write_deduplication_report(self, match_sets: list[MatchSet]) -> str:
        return self._write_json(DEDUPLICATION_FILE, [m.model_dump(mode="json") for m in match_sets])
