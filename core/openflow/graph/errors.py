"""Exceptions raised by the workflow engine."""


class WorkflowError(Exception):
    """Base class for engine errors."""

    pass


class UnknownNodeType(WorkflowError):
    """Raised when a node's type tag has no registered behavior."""

    def __init__(self, node_type: str, node_id: str | None = None):
        self.node_type = node_type
        self.node_id = node_id
        where = f" (node '{node_id}')" if node_id else ""
        super().__init__(f"Unknown node type: {node_type!r}{where}")


class BehaviorError(WorkflowError):
    """A node's unit of work failed. Isolated to that node."""

    kind = "behavior"


class NodeTimeoutError(BehaviorError):
    """A node's behavior did not finish within its timeout."""

    kind = "timeout"

    def __init__(self, node_id: str, timeout: float):
        self.node_id = node_id
        self.timeout = timeout
        super().__init__(f"Node '{node_id}' timed out after {timeout}s")


class RunCancelled(WorkflowError):
    """The run was stopped by an external cancellation signal."""

    pass
