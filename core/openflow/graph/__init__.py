"""Graph structures: Nodes, Edges, Behaviors and the Executor."""

from openflow.graph.node import NodeLogLine, NodeSpec, NodeState, NodeStatus
from openflow.graph.edge import EdgeSpec, GraphSpec, SourceFallback
from openflow.graph.errors import (
    BehaviorError,
    NodeTimeoutError,
    RunCancelled,
    UnknownNodeType,
    WorkflowError,
)
from openflow.graph.behaviors import (
    BehaviorRegistry,
    FailBehavior,
    FunctionBehavior,
    MemoryBehavior,
    NodeBehavior,
    PassthroughBehavior,
    TemplateBehavior,
    WaitBehavior,
    create_default_registry,
)
from openflow.graph.executor import (
    CancellationToken,
    ExecutionOptions,
    WorkflowExecutor,
    WorkItem,
)

__all__ = [
    # Node
    "NodeSpec",
    "NodeState",
    "NodeStatus",
    "NodeLogLine",
    # Edge
    "EdgeSpec",
    "GraphSpec",
    "SourceFallback",
    # Errors
    "WorkflowError",
    "UnknownNodeType",
    "BehaviorError",
    "NodeTimeoutError",
    "RunCancelled",
    # Behaviors
    "NodeBehavior",
    "BehaviorRegistry",
    "PassthroughBehavior",
    "WaitBehavior",
    "MemoryBehavior",
    "TemplateBehavior",
    "FailBehavior",
    "FunctionBehavior",
    "create_default_registry",
    # Executor
    "WorkflowExecutor",
    "ExecutionOptions",
    "CancellationToken",
    "WorkItem",
]
