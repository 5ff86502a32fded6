"""
OpenFlow - workflow execution engine.

Takes a graph of typed nodes and directed edges plus a trigger payload,
runs the nodes breadth-first, propagates outputs along edges and reports
every status change to an observer.
"""

from openflow.graph import (
    BehaviorRegistry,
    EdgeSpec,
    ExecutionOptions,
    GraphSpec,
    NodeSpec,
    NodeStatus,
    UnknownNodeType,
    WorkflowExecutor,
    create_default_registry,
)
from openflow.runtime import EventBus, RecordingObserver, WorkflowObserver
from openflow.schemas import RunResult, RunStatus

__all__ = [
    "GraphSpec",
    "NodeSpec",
    "EdgeSpec",
    "NodeStatus",
    "BehaviorRegistry",
    "create_default_registry",
    "WorkflowExecutor",
    "ExecutionOptions",
    "UnknownNodeType",
    "RunResult",
    "RunStatus",
    "EventBus",
    "WorkflowObserver",
    "RecordingObserver",
]
