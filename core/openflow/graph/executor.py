"""
Workflow Executor - Runs workflow graphs.

The executor:
1. Checks that every node type has a registered behavior
2. Creates a fresh RunContext (node states, shared memory, log)
3. Seeds a FIFO queue with the source nodes and the trigger payload
4. Pops one work item at a time, runs the node's behavior and pushes
   (target, output) for every outgoing edge
5. Returns a RunResult once the queue drains (or the run is cancelled)

Traversal is breadth-first so independent branches interleave fairly.
Each node runs at most once per run: the processed set drops repeat
visits, which also makes cycles terminate.

A failing node never aborts the run. Its status becomes ERROR, no edges
are followed from it, and sibling branches carry on.
"""

import asyncio
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from openflow.graph.behaviors import BehaviorRegistry, NodeBehavior, create_default_registry
from openflow.graph.edge import GraphSpec, SourceFallback
from openflow.graph.errors import BehaviorError, NodeTimeoutError, RunCancelled, UnknownNodeType
from openflow.graph.node import NodeStatus
from openflow.observability import get_trace_context, restore_trace_context, set_trace_context
from openflow.runtime.context import RunContext
from openflow.runtime.event_bus import EventBus
from openflow.runtime.observer import EventBusObserver, NullObserver, WorkflowObserver
from openflow.schemas.run import RunResult, RunStatus


class CancellationToken:
    """External stop signal, checked between work items."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelled("Run cancelled")

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class ExecutionOptions:
    """Settings recognized by WorkflowExecutor.execute()."""

    # False stops dequeuing after the first node error; downstream of a
    # failed node is blocked either way
    continue_on_error: bool = True

    # Seed for the run's shared memory (copied, never mutated)
    initial_memory: dict[str, Any] = field(default_factory=dict)

    # Seconds each behavior may take; a node's config["timeout"] overrides it
    timeout_per_node: float | None = None

    # Start policy when every node has an incoming edge
    source_fallback: SourceFallback = SourceFallback.FIRST_NODE

    cancellation: CancellationToken | None = None


@dataclass
class WorkItem:
    """A node waiting to run with the input it will receive."""

    node_id: str
    input_data: Any


async def _run_behavior(
    behavior: NodeBehavior,
    config: dict[str, Any],
    input_data: Any,
    ctx: RunContext,
) -> Any:
    """Call a behavior, keeping its own TimeoutError apart from the node timeout."""
    try:
        return await behavior.execute(config, input_data, ctx)
    except TimeoutError as e:
        raise RuntimeError(f"Behavior raised TimeoutError: {e}") from e


class WorkflowExecutor:
    """
    Executes workflow graphs.

    Example:
        executor = WorkflowExecutor(
            registry=create_default_registry(),
            observer=my_canvas_observer,
        )

        result = await executor.execute(
            graph=graph_spec,
            trigger={"x": 1},
            options=ExecutionOptions(timeout_per_node=5.0),
        )
    """

    def __init__(
        self,
        registry: BehaviorRegistry | None = None,
        observer: WorkflowObserver | None = None,
        event_bus: EventBus | None = None,
    ):
        """
        Initialize the executor.

        Args:
            registry: Node type -> behavior map (defaults to the built-in catalogue)
            observer: Receives every status/log/run notification
            event_bus: Convenience; wraps the bus in an EventBusObserver when no
                observer is given
        """
        self.registry = registry or create_default_registry()
        if observer is None and event_bus is not None:
            observer = EventBusObserver(event_bus)
        self.observer = observer or NullObserver()
        self.logger = logging.getLogger(__name__)

        self.last_result: RunResult | None = None
        self._active_token: CancellationToken | None = None

    def request_cancel(self) -> None:
        """Stop the current run at the next work item boundary."""
        if self._active_token is not None:
            self._active_token.cancel()
            self.logger.info("⏹ Cancel requested - will stop at next node boundary")

    async def execute(
        self,
        graph: GraphSpec,
        trigger: Any = None,
        options: ExecutionOptions | None = None,
        start_nodes: list[str] | None = None,
    ) -> RunResult:
        """
        Run a graph to completion.

        Args:
            graph: The workflow graph (never mutated)
            trigger: Input for the start nodes (defaults to {})
            options: Execution settings
            start_nodes: Explicit start nodes instead of the graph's sources

        Returns:
            RunResult with status COMPLETED or CANCELLED

        Raises:
            ValueError/TypeError: malformed graph or unknown start node
            UnknownNodeType: a node's type is not registered (before any node runs)
        """
        if graph is None:
            raise ValueError("graph is required")
        if not isinstance(graph, GraphSpec):
            raise TypeError(f"graph must be a GraphSpec, got {type(graph).__name__}")

        options = options or ExecutionOptions()
        trigger = {} if trigger is None else trigger

        self.registry.check_graph(graph)

        if start_nodes is not None:
            unknown = [nid for nid in start_nodes if graph.get_node(nid) is None]
            if unknown:
                raise ValueError(f"Unknown start node(s): {unknown}")
            sources = list(dict.fromkeys(start_nodes))
        else:
            sources = graph.sources(fallback=options.source_fallback)

        token = options.cancellation or CancellationToken()
        self._active_token = token

        run_id = f"run_{uuid.uuid4().hex[:12]}"
        outer_context = get_trace_context()
        set_trace_context(run_id=run_id, graph_id=graph.id)

        ctx = RunContext(
            run_id=run_id,
            graph=graph,
            initial_memory=options.initial_memory,
            observer=self.observer,
            trigger=trigger,
        )
        result = RunResult(run_id=run_id, graph_id=graph.id)
        status = RunStatus.COMPLETED

        self.logger.info(f"🚀 Starting run {run_id}: {graph.name}")
        self.logger.info(f"   Sources: {sources}")

        try:
            # Announce before any node transition
            await ctx.notify("on_run_started", run_id, list(sources), trigger)

            # Reset: every node starts IDLE with nothing from previous runs
            ctx.reset()
            for node_id in ctx.states:
                await ctx.set_status(node_id, NodeStatus.IDLE)

            queue: deque[WorkItem] = deque()
            for node_id in sources:
                queue.append(WorkItem(node_id=node_id, input_data=trigger))
                await ctx.set_status(node_id, NodeStatus.QUEUED)

            processed: set[str] = set()

            while queue:
                try:
                    token.raise_if_cancelled()
                except RunCancelled:
                    status = RunStatus.CANCELLED
                    self.logger.info("⏹ Run cancelled - stopping before next node")
                    await ctx.append_log(None, "Run cancelled")
                    break

                item = queue.popleft()
                if item.node_id in processed:
                    continue
                processed.add(item.node_id)
                result.path.append(item.node_id)

                succeeded, output = await self._run_node(ctx, item, options)

                if not succeeded:
                    if not options.continue_on_error:
                        self.logger.info("   → continue_on_error is off, stopping run")
                        await ctx.append_log(None, f"Stopping run after failure of {item.node_id}")
                        break
                    continue

                for edge in graph.outgoing_edges(item.node_id):
                    queue.append(WorkItem(node_id=edge.target, input_data=output))
                    await ctx.notify("on_edge_traversed", edge.id, edge.source, edge.target)
                    if ctx.state(edge.target).status == NodeStatus.IDLE:
                        await ctx.set_status(edge.target, NodeStatus.QUEUED)

        except asyncio.CancelledError:
            status = RunStatus.CANCELLED
            self.logger.info("⏹ Run task cancelled")
            self._finish(ctx, result, status)
            await ctx.notify("on_run_finished", result)
            raise
        finally:
            restore_trace_context(outer_context)
            self._active_token = None

        self._finish(ctx, result, status)

        self.logger.info(f"\n✓ Run {status.value}")
        self.logger.info(f"   Path: {' → '.join(result.path)}")
        if result.failed_nodes:
            self.logger.info(f"   Failed: {result.failed_nodes}")

        await ctx.notify("on_run_finished", result)
        return result

    def _finish(self, ctx: RunContext, result: RunResult, status: RunStatus) -> None:
        result.status = status
        result.nodes = ctx.states
        result.memory = ctx.memory.read_all()
        result.log = ctx.log
        result.completed_at = datetime.now()
        self.last_result = result

    async def _run_node(
        self,
        ctx: RunContext,
        item: WorkItem,
        options: ExecutionOptions,
    ) -> tuple[bool, Any]:
        """
        Run one node's behavior.

        Returns:
            (succeeded, output). Failures are captured into the node state.
        """
        node_id = item.node_id
        spec = ctx.node(node_id)
        state = ctx.state(node_id)

        set_trace_context(node_id=node_id)
        ctx.current_node_id = node_id

        state.last_input = item.input_data
        await ctx.set_status(node_id, NodeStatus.RUNNING)
        self.logger.info(f"\n▶ {spec.display_name} ({spec.type})")

        timeout = spec.config.get("timeout", options.timeout_per_node)
        error: Exception | None = None
        error_kind = "behavior"

        try:
            behavior = self.registry.resolve(spec.type)
            call = _run_behavior(behavior, dict(spec.config), item.input_data, ctx)
            if timeout is not None:
                output = await asyncio.wait_for(call, timeout=float(timeout))
            else:
                output = await call
        except TimeoutError:
            # Only wait_for can get here; a behavior's own TimeoutError is wrapped
            error = NodeTimeoutError(node_id, float(timeout))
            error_kind = NodeTimeoutError.kind
        except UnknownNodeType as e:
            error = e
            error_kind = "unknown_type"
        except BehaviorError as e:
            error = e
            error_kind = e.kind
        except asyncio.CancelledError:
            state.error = "Cancelled while running"
            state.error_kind = "cancelled"
            await ctx.set_status(node_id, NodeStatus.ERROR)
            raise
        except Exception as e:
            self.logger.exception(f"   ✗ Unexpected error in {node_id}")
            error = e
            error_kind = "exception"
        finally:
            ctx.current_node_id = None

        if error is not None:
            state.error = str(error)
            state.error_kind = error_kind
            self.logger.error(f"   ✗ Failed: {error}")
            await ctx.set_status(node_id, NodeStatus.ERROR)
            await ctx.append_log(node_id, f"Error ({error_kind}): {error}", level="error")
            return False, None

        state.last_output = output
        await ctx.set_status(node_id, NodeStatus.SUCCESS, output)
        await ctx.append_log(node_id, f"Completed {spec.display_name} in {state.duration_ms}ms")
        self.logger.info(f"   ✓ Done in {state.duration_ms}ms")
        return True, output
