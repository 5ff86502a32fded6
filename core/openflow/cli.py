"""
Command-line interface for OpenFlow.

Usage:
    openflow run workflow.json --input '{"x": 1}'
    openflow run workflow.json --memory-from-last --timeout 5
    openflow validate workflow.json
    openflow types
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from openflow.config import EngineConfig
from openflow.graph.behaviors import create_default_registry
from openflow.graph.edge import GraphSpec
from openflow.graph.errors import UnknownNodeType
from openflow.graph.executor import WorkflowExecutor
from openflow.graph.node import NodeStatus
from openflow.observability import configure_logging
from openflow.runtime.observer import WorkflowObserver
from openflow.schemas.run import RunResult
from openflow.storage.run_store import RunStore

STATUS_MARKS = {
    NodeStatus.QUEUED: "…",
    NodeStatus.RUNNING: "▶",
    NodeStatus.SUCCESS: "✓",
    NodeStatus.ERROR: "✗",
}


class ConsoleObserver(WorkflowObserver):
    """Prints node transitions and log lines to stderr."""

    async def on_node_status_changed(
        self,
        node_id: str,
        status: NodeStatus,
        output: Any = None,
    ) -> None:
        mark = STATUS_MARKS.get(status)
        if mark:
            print(f"  {mark} {node_id}: {status.value}", file=sys.stderr)

    async def on_log(self, node_id: str, message: str, timestamp: datetime) -> None:
        where = node_id or "run"
        print(f"    [{timestamp.strftime('%H:%M:%S')}] {where}: {message}", file=sys.stderr)


def load_graph(path: str | Path) -> GraphSpec:
    """Load a {"nodes": [...], "edges": [...]} workflow file."""
    return GraphSpec.model_validate_json(Path(path).read_text(encoding="utf-8"))


def _parse_json_arg(value: str | None, name: str) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise SystemExit(f"Invalid JSON for {name}: {e}") from None


async def _run(
    args: argparse.Namespace,
    config: EngineConfig,
    trigger: Any,
    initial_memory: dict[str, Any],
) -> RunResult:
    graph = load_graph(args.graph)
    store = RunStore(Path(args.store) if args.store else config.store_path)

    if args.memory_from_last:
        initial_memory = {**(await store.latest_memory() or {}), **initial_memory}

    options = config.to_options(initial_memory=initial_memory)
    if args.timeout is not None:
        options.timeout_per_node = args.timeout
    if args.stop_on_error:
        options.continue_on_error = False

    executor = WorkflowExecutor(
        registry=create_default_registry(simulate_latency=args.simulate_latency),
        observer=None if args.quiet else ConsoleObserver(),
    )
    result = await executor.execute(
        graph=graph,
        trigger=trigger,
        options=options,
        start_nodes=args.start or None,
    )

    if not args.no_save:
        await store.save(result)
    return result


def cmd_run(args: argparse.Namespace) -> int:
    trigger = _parse_json_arg(args.input, "--input")
    initial_memory = _parse_json_arg(args.memory, "--memory") or {}

    config = EngineConfig()
    configure_logging(level=args.log_level or config.log_level, format=config.log_format)

    try:
        result = asyncio.run(_run(args, config, trigger, initial_memory))
    except (OSError, ValidationError, ValueError, UnknownNodeType) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    output = {
        "run_id": result.run_id,
        "status": result.status.value,
        "path": result.path,
        "failed_nodes": result.failed_nodes,
        "outputs": {nid: state.last_output for nid, state in result.nodes.items()},
        "memory": result.memory,
    }
    print(json.dumps(output, indent=2, default=str))
    print(result.summary(), file=sys.stderr)
    return 1 if result.has_errors else 0


def cmd_validate(args: argparse.Namespace) -> int:
    try:
        graph = load_graph(args.graph)
    except (OSError, ValidationError) as e:
        print(f"Invalid workflow: {e}", file=sys.stderr)
        return 2

    registry = create_default_registry()
    errors = [
        f"Node '{node.id}' has unknown type '{node.type}'"
        for node in graph.nodes
        if node.type not in registry
    ]
    warnings = graph.validate_graph()

    for message in errors:
        print(f"error: {message}")
    for message in warnings:
        print(f"warning: {message}")
    if not errors:
        print(f"✓ {graph.name}: {len(graph.nodes)} nodes, {len(graph.edges)} edges")
    return 1 if errors else 0


def cmd_types(args: argparse.Namespace) -> int:
    registry = create_default_registry()
    for node_type in registry.types():
        behavior = registry.resolve(node_type)
        print(f"{node_type:<12} {type(behavior).__name__:<20} ~{behavior.latency_ms}ms")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="openflow",
        description="OpenFlow - Run visual workflow graphs",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Execute a workflow file")
    run_parser.add_argument("graph", help="Path to workflow JSON")
    run_parser.add_argument("--input", help="Trigger payload as JSON")
    run_parser.add_argument("--memory", help="Initial shared memory as JSON")
    run_parser.add_argument(
        "--memory-from-last",
        action="store_true",
        help="Seed shared memory from the last saved run",
    )
    run_parser.add_argument("--start", action="append", help="Explicit start node (repeatable)")
    run_parser.add_argument("--timeout", type=float, help="Per-node timeout in seconds")
    run_parser.add_argument(
        "--stop-on-error",
        action="store_true",
        help="Stop the run after the first node error",
    )
    run_parser.add_argument(
        "--simulate-latency",
        action="store_true",
        help="Make integration nodes sleep for their nominal latency",
    )
    run_parser.add_argument("--store", help="Directory for saved runs")
    run_parser.add_argument("--no-save", action="store_true", help="Do not save the run")
    run_parser.add_argument("--quiet", "-q", action="store_true", help="Only output result JSON")
    run_parser.add_argument("--log-level", help="Log level (DEBUG, INFO, ...)")
    run_parser.set_defaults(func=cmd_run)

    validate_parser = subparsers.add_parser("validate", help="Check a workflow file")
    validate_parser.add_argument("graph", help="Path to workflow JSON")
    validate_parser.set_defaults(func=cmd_validate)

    types_parser = subparsers.add_parser("types", help="List registered node types")
    types_parser.set_defaults(func=cmd_types)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if hasattr(args, "func"):
        sys.exit(args.func(args))


if __name__ == "__main__":
    main()
