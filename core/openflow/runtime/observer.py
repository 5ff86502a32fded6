"""
Observers - How the outside world follows a run.

The executor calls an observer on every state transition. The canvas, a
log panel or a test implements WorkflowObserver and overrides only the
callbacks it cares about; every callback defaults to a no-op.

The executor never depends on how (or whether) events are rendered, and an
observer that raises never breaks the run.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any

from openflow.graph.node import NodeStatus
from openflow.runtime.event_bus import EventBus
from openflow.runtime.shared_state import StateChange

if TYPE_CHECKING:
    from openflow.schemas.run import RunResult


class WorkflowObserver:
    """Base observer. Subclass and override what you need."""

    async def on_run_started(self, run_id: str, sources: list[str], trigger: Any) -> None:
        pass

    async def on_node_status_changed(
        self,
        node_id: str,
        status: NodeStatus,
        output: Any = None,
    ) -> None:
        pass

    async def on_log(self, node_id: str, message: str, timestamp: datetime) -> None:
        pass

    async def on_state_changed(self, change: StateChange) -> None:
        pass

    async def on_edge_traversed(self, edge_id: str, source: str, target: str) -> None:
        pass

    async def on_run_finished(self, result: "RunResult") -> None:
        pass


class NullObserver(WorkflowObserver):
    """Ignores everything."""


class RecordingObserver(WorkflowObserver):
    """
    Keeps every notification in memory, in arrival order.

    Useful in tests.
    """

    def __init__(self):
        self.run_ids: list[str] = []
        self.transitions: list[tuple[str, NodeStatus]] = []
        self.outputs: dict[str, Any] = {}
        self.logs: list[tuple[str, str]] = []
        self.edges: list[tuple[str, str]] = []
        self.changes: list[StateChange] = []
        self.results: list["RunResult"] = []

    async def on_run_started(self, run_id: str, sources: list[str], trigger: Any) -> None:
        self.run_ids.append(run_id)

    async def on_node_status_changed(
        self,
        node_id: str,
        status: NodeStatus,
        output: Any = None,
    ) -> None:
        self.transitions.append((node_id, status))
        if status == NodeStatus.SUCCESS:
            self.outputs[node_id] = output

    async def on_log(self, node_id: str, message: str, timestamp: datetime) -> None:
        self.logs.append((node_id, message))

    async def on_state_changed(self, change: StateChange) -> None:
        self.changes.append(change)

    async def on_edge_traversed(self, edge_id: str, source: str, target: str) -> None:
        self.edges.append((source, target))

    async def on_run_finished(self, result: "RunResult") -> None:
        self.results.append(result)

    def statuses_for(self, node_id: str) -> list[NodeStatus]:
        return [status for nid, status in self.transitions if nid == node_id]


class EventBusObserver(WorkflowObserver):
    """Republishes every notification on an EventBus."""

    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus
        self._run_id = ""

    async def on_run_started(self, run_id: str, sources: list[str], trigger: Any) -> None:
        self._run_id = run_id
        await self.event_bus.emit_run_started(run_id=run_id, sources=sources, trigger=trigger)

    async def on_node_status_changed(
        self,
        node_id: str,
        status: NodeStatus,
        output: Any = None,
    ) -> None:
        await self.event_bus.emit_node_status_changed(
            run_id=self._run_id,
            node_id=node_id,
            status=str(status),
            output=output,
        )

    async def on_log(self, node_id: str, message: str, timestamp: datetime) -> None:
        await self.event_bus.emit_node_log(
            run_id=self._run_id,
            node_id=node_id,
            message=message,
            timestamp=timestamp,
        )

    async def on_state_changed(self, change: StateChange) -> None:
        await self.event_bus.emit_state_changed(
            run_id=change.run_id,
            key=change.key,
            old_value=change.old_value,
            new_value=change.new_value,
            node_id=change.node_id,
        )

    async def on_edge_traversed(self, edge_id: str, source: str, target: str) -> None:
        await self.event_bus.emit_edge_traversed(
            run_id=self._run_id,
            edge_id=edge_id,
            source_node=source,
            target_node=target,
        )

    async def on_run_finished(self, result: "RunResult") -> None:
        await self.event_bus.emit_run_finished(
            run_id=result.run_id,
            status=str(result.status),
            path=result.path,
            failed_nodes=result.failed_nodes,
        )
