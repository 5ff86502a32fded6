"""Schemas for run results."""

from openflow.schemas.run import LogEntry, RunResult, RunStatus

__all__ = ["LogEntry", "RunResult", "RunStatus"]
