"""Persistence for run results and shared memory."""

from openflow.storage.run_store import RunStore, atomic_write

__all__ = ["RunStore", "atomic_write"]
