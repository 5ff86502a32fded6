"""
Run Schema - The outcome of one execution of a workflow graph.

A RunResult carries the final state of every node, the shared memory
snapshot, the ordered log and the overall run status. It stays available
for inspection until the next run replaces it.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, computed_field

from openflow.graph.node import NodeState, NodeStatus


class RunStatus(StrEnum):
    """Status of a run."""

    RUNNING = "running"
    COMPLETED = "completed"  # Queue drained, possibly with node errors
    CANCELLED = "cancelled"


class LogEntry(BaseModel):
    """One line of the run log."""

    timestamp: datetime = Field(default_factory=datetime.now)
    node_id: str | None = None
    level: str = "info"  # "info" | "error"
    message: str

    def __str__(self) -> str:
        where = f"[{self.node_id}] " if self.node_id else ""
        return f"{self.timestamp.strftime('%H:%M:%S')} {where}{self.message}"


class RunResult(BaseModel):
    """
    Result of executing a graph.

    The run itself always completes (or is cancelled); node failures show
    up as ERROR node states and in has_errors, never as an exception.
    """

    run_id: str
    graph_id: str = ""
    status: RunStatus = RunStatus.RUNNING
    nodes: dict[str, NodeState] = Field(default_factory=dict)
    memory: dict[str, Any] = Field(default_factory=dict)
    log: list[LogEntry] = Field(default_factory=list)
    path: list[str] = Field(default_factory=list)  # Node IDs in execution order

    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: datetime | None = None

    @computed_field
    @property
    def duration_ms(self) -> int:
        """Duration of the run in milliseconds."""
        if self.completed_at is None:
            return 0
        delta = self.completed_at - self.started_at
        return int(delta.total_seconds() * 1000)

    @property
    def failed_nodes(self) -> list[str]:
        """Nodes that ended in ERROR, in execution order."""
        return [nid for nid in self.path if self.nodes[nid].status == NodeStatus.ERROR]

    @property
    def has_errors(self) -> bool:
        return bool(self.failed_nodes)

    @property
    def completed_with_errors(self) -> bool:
        return self.status == RunStatus.COMPLETED and self.has_errors

    @property
    def unreached_nodes(self) -> list[str]:
        """Nodes that never ran (still IDLE or QUEUED)."""
        return [nid for nid, state in self.nodes.items() if not state.status.is_terminal]

    def output_of(self, node_id: str) -> Any:
        return self.nodes[node_id].last_output

    def status_of(self, node_id: str) -> NodeStatus:
        return self.nodes[node_id].status

    def to_snapshot(self) -> dict[str, Any]:
        """
        Flat, JSON-compatible view for persistence between runs.

        Keys are "memory.<key>" and "nodes.<node_id>.output" plus a few
        run-level fields.
        """
        snapshot: dict[str, Any] = {
            "run_id": self.run_id,
            "graph_id": self.graph_id,
            "status": self.status.value,
        }
        dumped = self.model_dump(mode="json", include={"memory", "nodes"})
        for key, value in dumped["memory"].items():
            snapshot[f"memory.{key}"] = value
        for node_id, state in dumped["nodes"].items():
            snapshot[f"nodes.{node_id}.status"] = state["status"]
            snapshot[f"nodes.{node_id}.output"] = state["last_output"]
        return snapshot

    def summary(self) -> str:
        """One-line human summary."""
        ok = sum(1 for s in self.nodes.values() if s.status == NodeStatus.SUCCESS)
        return (
            f"Run {self.run_id} {self.status.value}: {ok} succeeded, "
            f"{len(self.failed_nodes)} failed, {len(self.unreached_nodes)} not reached "
            f"({self.duration_ms}ms)"
        )
