"""
Node Protocol - The units of work in a workflow graph.

A node is declared by the editor as a NodeSpec (identity, type tag, opaque
config) and tracked during a run as a NodeState (status, input, output, log).

The spec side is immutable during a run. The state side is owned by the
RunContext and mutated only by the WorkflowExecutor, so the caller's graph
is never touched by execution.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class NodeStatus(StrEnum):
    """Lifecycle of a node within a single run."""

    IDLE = "idle"
    QUEUED = "queued"
    RUNNING = "running"
    SUCCESS = "success"  # Terminal
    ERROR = "error"  # Terminal

    @property
    def is_terminal(self) -> bool:
        return self in (NodeStatus.SUCCESS, NodeStatus.ERROR)


class NodeSpec(BaseModel):
    """
    Specification for a node in the graph.

    Examples:
        NodeSpec(id="1", type="webhook", label="Start Trigger")

        NodeSpec(
            id="2",
            type="wait",
            config={"ms": 250},
        )
    """

    id: str
    type: str = Field(description="Behavior type tag, resolved through the registry")
    label: str = ""
    config: dict[str, Any] = Field(
        default_factory=dict,
        description="Options interpreted only by the node's behavior",
    )

    model_config = {"extra": "allow", "frozen": True}

    @property
    def display_name(self) -> str:
        return self.label or self.id


class NodeLogLine(BaseModel):
    """A timestamped line in a node's own log."""

    timestamp: datetime = Field(default_factory=datetime.now)
    message: str

    def __str__(self) -> str:
        return f"[{self.timestamp.strftime('%H:%M:%S')}] {self.message}"


class NodeState(BaseModel):
    """Run-scoped state of one node."""

    node_id: str
    status: NodeStatus = NodeStatus.IDLE
    last_input: Any = None
    last_output: Any = None
    log: list[NodeLogLine] = Field(default_factory=list)

    # Failure details (only set when status is ERROR)
    error: str | None = None
    error_kind: str | None = None  # "behavior" | "timeout" | "exception" | "cancelled"

    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def duration_ms(self) -> int:
        if self.started_at is None or self.finished_at is None:
            return 0
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    def reset(self) -> None:
        """Return to IDLE and forget everything from a previous run."""
        self.status = NodeStatus.IDLE
        self.last_input = None
        self.last_output = None
        self.log = []
        self.error = None
        self.error_kind = None
        self.started_at = None
        self.finished_at = None
