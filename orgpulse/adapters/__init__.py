"""Adapters for external storage: JSON snapshot and history files."""

from orgpulse.adapters.snapshot_store import SnapshotStore

__all__ = ["SnapshotStore"]
