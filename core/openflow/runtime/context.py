"""
Run Context - Per-execution mutable state.

A RunContext is created at the start of every run and owns:
- its own NodeState per node (the caller's graph is never mutated)
- the run's SharedMemory
- the ordered run log

Behaviors receive the context so that anything they write lands in this
run only. Status transitions go through the context so the observer is
notified on every one of them.
"""

import logging
from datetime import datetime
from typing import Any

from openflow.graph.edge import GraphSpec
from openflow.graph.node import NodeLogLine, NodeSpec, NodeState, NodeStatus
from openflow.runtime.observer import NullObserver, WorkflowObserver
from openflow.runtime.shared_state import SharedMemory, StateChange
from openflow.schemas.run import LogEntry

logger = logging.getLogger(__name__)


class RunContext:
    """
    State for a single run.

    Example:
        ctx = RunContext(run_id="run_1", graph=graph, initial_memory={"seen": 0})
        await ctx.memory.write("seen", 1, node_id="n2")
        ctx.state("n2").status
    """

    def __init__(
        self,
        run_id: str,
        graph: GraphSpec,
        initial_memory: dict[str, Any] | None = None,
        observer: WorkflowObserver | None = None,
        trigger: Any = None,
    ):
        self.run_id = run_id
        self.graph = graph
        self.trigger = trigger
        self.observer = observer or NullObserver()
        self.memory = SharedMemory(run_id=run_id, initial=initial_memory)
        self.memory.add_listener(self._on_memory_change)
        self.log: list[LogEntry] = []
        self.states: dict[str, NodeState] = {
            node.id: NodeState(node_id=node.id) for node in graph.nodes
        }
        # Set by the executor while a behavior runs
        self.current_node_id: str | None = None

    # === NODE STATE ===

    def node(self, node_id: str) -> NodeSpec:
        spec = self.graph.get_node(node_id)
        if spec is None:
            raise KeyError(node_id)
        return spec

    def state(self, node_id: str) -> NodeState:
        return self.states[node_id]

    def reset(self) -> None:
        for state in self.states.values():
            state.reset()
        self.log = []

    async def set_status(
        self,
        node_id: str,
        status: NodeStatus,
        output: Any = None,
    ) -> None:
        """Transition a node and notify the observer."""
        state = self.states[node_id]
        state.status = status
        if status == NodeStatus.RUNNING:
            state.started_at = datetime.now()
        elif status.is_terminal:
            state.finished_at = datetime.now()
        await self.notify("on_node_status_changed", node_id, status, output)

    # === LOGGING ===

    async def append_log(self, node_id: str | None, message: str, level: str = "info") -> None:
        """Append to the run log (and the node's own log) and notify the observer."""
        entry = LogEntry(node_id=node_id, message=message, level=level)
        self.log.append(entry)
        if node_id is not None and node_id in self.states:
            self.states[node_id].log.append(
                NodeLogLine(timestamp=entry.timestamp, message=message)
            )
        await self.notify("on_log", node_id, message, entry.timestamp)

    # === OBSERVER PLUMBING ===

    async def _on_memory_change(self, change: StateChange) -> None:
        await self.notify("on_state_changed", change)

    async def notify(self, method: str, *args: Any) -> None:
        try:
            await getattr(self.observer, method)(*args)
        except Exception as e:
            logger.error(f"Observer error in {method}: {e}")
