"""
Node Behaviors - What a node of a given type actually does.

A behavior is a unit of work resolved by node type through the
BehaviorRegistry. It receives the node's config, its input and the
RunContext, and returns the node's output. Raising signals failure; the
executor turns the exception into an ERROR status for that node only.

Behaviors must only touch the RunContext they are given (memory writes go
through ctx.memory), never module-level state, so separate runs never
interfere.

The built-in catalogue stands in for real integrations without doing any
I/O:
- passthrough / noop: return the input unchanged
- wait: suspend for config["ms"] milliseconds, then pass the input on
- memory: read/write the run's shared memory
- template: produce a canned structured value with {{...}} placeholders
- webhook, ai, gmail, discord, db, code: editor node types backed by
  canned templates
- fail: always raise (useful for failure-isolation scenarios)
"""

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

from openflow.graph.edge import GraphSpec
from openflow.graph.errors import BehaviorError, UnknownNodeType
from openflow.graph.interpolation import interpolate
from openflow.runtime.context import RunContext

logger = logging.getLogger(__name__)


def _scope(config: dict[str, Any], input_data: Any, ctx: RunContext) -> dict[str, Any]:
    """Names visible to {{...}} placeholders."""
    return {
        "input": input_data,
        "config": config,
        "memory": ctx.memory.read_all(),
        "trigger": ctx.trigger,
    }


class NodeBehavior:
    """
    Interface all behaviors implement.

    latency_ms is the nominal duration of the work. Behaviors that simulate
    work suspend for it; the executor uses it for logging only.
    """

    latency_ms: int = 0

    async def execute(self, config: dict[str, Any], input_data: Any, ctx: RunContext) -> Any:
        raise NotImplementedError


class PassthroughBehavior(NodeBehavior):
    """Returns the input unchanged."""

    async def execute(self, config: dict[str, Any], input_data: Any, ctx: RunContext) -> Any:
        return input_data


class WaitBehavior(NodeBehavior):
    """Suspends for config["ms"] milliseconds (cancellable), then passes the input on."""

    def __init__(self, latency_ms: int = 1000):
        self.latency_ms = latency_ms

    async def execute(self, config: dict[str, Any], input_data: Any, ctx: RunContext) -> Any:
        ms = config.get("ms", self.latency_ms)
        try:
            delay = float(ms) / 1000
        except (TypeError, ValueError):
            raise BehaviorError(f"Invalid wait duration: {ms!r}") from None
        if delay < 0:
            raise BehaviorError(f"Invalid wait duration: {ms!r}")
        await asyncio.sleep(delay)
        return input_data


class MemoryBehavior(NodeBehavior):
    """
    Key-value access to the run's shared memory.

    Config:
        operation: "set" or "get" (default "set")
        key: memory key (required)
        value: value to store on "set", placeholders allowed (defaults to the node input)
        output_key: where to put the value on "get" (defaults to key)
        default: value returned on "get" when the key is missing
    """

    async def execute(self, config: dict[str, Any], input_data: Any, ctx: RunContext) -> Any:
        key = config.get("key")
        if not key:
            raise BehaviorError("memory node requires a 'key'")

        operation = config.get("operation", "set")

        if operation == "set":
            if "value" in config:
                value = interpolate(config["value"], _scope(config, input_data, ctx))
            else:
                value = input_data
            await ctx.memory.write(key, value, node_id=ctx.current_node_id)
            return input_data

        if operation == "get":
            value = ctx.memory.read(key, config.get("default"))
            if isinstance(input_data, dict):
                return {**input_data, config.get("output_key", key): value}
            return value

        raise BehaviorError(f"Unknown memory operation: {operation!r}")


class TemplateBehavior(NodeBehavior):
    """
    Produces a canned structured value.

    The template comes from config["template"] or the one given at
    registration. Placeholders can reference input, config, memory and
    trigger. `defaults` fill in config options the node does not set.
    """

    def __init__(
        self,
        template: Any = None,
        defaults: dict[str, Any] | None = None,
        latency_ms: int = 0,
        simulate_latency: bool = False,
    ):
        self.template = template
        self.defaults = defaults or {}
        self.latency_ms = latency_ms
        self.simulate_latency = simulate_latency

    async def execute(self, config: dict[str, Any], input_data: Any, ctx: RunContext) -> Any:
        merged = {**self.defaults, **config}
        template = merged.get("template", self.template)
        if template is None:
            raise BehaviorError("template node requires a 'template'")

        if self.simulate_latency and self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000)

        return interpolate(template, _scope(merged, input_data, ctx))


class FailBehavior(NodeBehavior):
    """Always fails with config["message"]."""

    async def execute(self, config: dict[str, Any], input_data: Any, ctx: RunContext) -> Any:
        raise BehaviorError(config.get("message", "Node failed"))


class FunctionBehavior(NodeBehavior):
    """
    Wraps a plain callable.

    The callable may be sync or async and may take either (input_data) or
    (config, input_data, ctx).
    """

    def __init__(self, func: Callable, latency_ms: int = 0):
        self.func = func
        self.latency_ms = latency_ms
        try:
            params = inspect.signature(func).parameters
            self._input_only = len(params) == 1
        except (TypeError, ValueError):
            self._input_only = False

    async def execute(self, config: dict[str, Any], input_data: Any, ctx: RunContext) -> Any:
        if self._input_only:
            result = self.func(input_data)
        else:
            result = self.func(config, input_data, ctx)
        if inspect.isawaitable(result):
            result = await result
        return result


class BehaviorRegistry:
    """
    Maps node type tags to behaviors.

    New node types are added by registering, never by branching inside the
    executor.

    Example:
        registry = create_default_registry()
        registry.register_function("uppercase", lambda text: text.upper())
        behavior = registry.resolve("uppercase")
    """

    def __init__(self, behaviors: dict[str, NodeBehavior] | None = None):
        self._behaviors: dict[str, NodeBehavior] = dict(behaviors or {})

    def register(self, node_type: str, behavior: NodeBehavior) -> None:
        """Register (or replace) the behavior for a node type."""
        if node_type in self._behaviors:
            logger.debug(f"Replacing behavior for node type {node_type!r}")
        self._behaviors[node_type] = behavior

    def register_function(self, node_type: str, func: Callable, latency_ms: int = 0) -> None:
        """Register a plain function as a behavior."""
        self.register(node_type, FunctionBehavior(func, latency_ms=latency_ms))

    def unregister(self, node_type: str) -> bool:
        return self._behaviors.pop(node_type, None) is not None

    def resolve(self, node_type: str) -> NodeBehavior:
        """Get the behavior for a node type, or raise UnknownNodeType."""
        behavior = self._behaviors.get(node_type)
        if behavior is None:
            raise UnknownNodeType(node_type)
        return behavior

    def check_graph(self, graph: GraphSpec) -> None:
        """Raise UnknownNodeType for the first node whose type is not registered."""
        for node in graph.nodes:
            if node.type not in self._behaviors:
                raise UnknownNodeType(node.type, node_id=node.id)

    def types(self) -> list[str]:
        return sorted(self._behaviors)

    def __contains__(self, node_type: str) -> bool:
        return node_type in self._behaviors

    def __len__(self) -> int:
        return len(self._behaviors)


# Canned outputs for the editor's integration node types
INTEGRATION_TEMPLATES: dict[str, tuple[Any, dict[str, Any], int]] = {
    "ai": (
        {"model": "{{config.model}}", "prompt": "{{config.prompt}}", "completion": "{{input}}"},
        {"model": "default", "prompt": ""},
        800,
    ),
    "gmail": (
        {"sent": True, "to": "{{config.to}}", "subject": "{{config.subject}}", "body": "{{input}}"},
        {"to": "", "subject": ""},
        400,
    ),
    "discord": (
        {"posted": True, "channel": "{{config.channel}}", "content": "{{input}}"},
        {"channel": "general"},
        300,
    ),
    "db": (
        {"query": "{{config.query}}", "rows": [], "row_count": 0},
        {"query": ""},
        200,
    ),
    "code": (
        {"result": "{{input}}"},
        {},
        50,
    ),
}


def create_default_registry(simulate_latency: bool = False) -> BehaviorRegistry:
    """
    Build a registry holding the built-in catalogue.

    Args:
        simulate_latency: Make integration stand-ins sleep for their nominal
            latency instead of returning immediately.
    """
    registry = BehaviorRegistry()
    registry.register("passthrough", PassthroughBehavior())
    registry.register("noop", PassthroughBehavior())
    registry.register("webhook", PassthroughBehavior())
    registry.register("wait", WaitBehavior())
    registry.register("memory", MemoryBehavior())
    registry.register("template", TemplateBehavior())
    registry.register("fail", FailBehavior())

    for node_type, (template, defaults, latency_ms) in INTEGRATION_TEMPLATES.items():
        registry.register(
            node_type,
            TemplateBehavior(
                template=template,
                defaults=defaults,
                latency_ms=latency_ms,
                simulate_latency=simulate_latency,
            ),
        )

    return registry
