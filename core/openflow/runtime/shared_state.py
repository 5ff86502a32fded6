"""
Shared Memory - The key-value store every node in a run can see.

Each run owns exactly one SharedMemory. Writes are serialized per key with
an asyncio lock so that, if sibling branches ever run concurrently, a
fan-in node still reads the last completed write.

Every write is recorded as a StateChange for debugging and for the
observer's state_changed events.
"""

import asyncio
import copy
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class StateChange:
    """Record of a state change."""

    key: str
    old_value: Any
    new_value: Any
    node_id: str | None
    run_id: str
    timestamp: float = field(default_factory=time.time)


# Called after every committed write
ChangeListener = Callable[[StateChange], Awaitable[None]]


class SharedMemory:
    """
    Run-scoped shared memory.

    Example:
        memory = SharedMemory(run_id="run_1", initial={"counter": 1})

        await memory.write("customer_id", "cust_456", node_id="n2")
        value = memory.read("customer_id")
    """

    def __init__(
        self,
        run_id: str,
        initial: dict[str, Any] | None = None,
        max_history: int = 1000,
    ):
        self.run_id = run_id
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._key_locks: dict[str, asyncio.Lock] = {}
        self._change_history: list[StateChange] = []
        self._max_history = max_history
        self._listeners: list[ChangeListener] = []
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    # === READS ===

    def read(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def keys(self) -> list[str]:
        return list(self._data.keys())

    def read_all(self) -> dict[str, Any]:
        """Deep copy of the current contents."""
        return copy.deepcopy(self._data)

    # === WRITES ===

    def _get_key_lock(self, key: str) -> asyncio.Lock:
        if key not in self._key_locks:
            self._key_locks[key] = asyncio.Lock()
        return self._key_locks[key]

    async def write(self, key: str, value: Any, node_id: str | None = None) -> None:
        """Write a value, one writer at a time per key."""
        async with self._get_key_lock(key):
            old_value = self._data.get(key)
            self._data[key] = value
            self._version += 1
            change = StateChange(
                key=key,
                old_value=old_value,
                new_value=value,
                node_id=node_id,
                run_id=self.run_id,
            )
            self._record_change(change)

        logger.debug(f"Memory write {key!r} by {node_id or '-'} (v{self._version})")
        await self._notify_listeners(change)

    async def delete(self, key: str, node_id: str | None = None) -> bool:
        async with self._get_key_lock(key):
            if key not in self._data:
                return False
            old_value = self._data.pop(key)
            self._version += 1
            change = StateChange(
                key=key,
                old_value=old_value,
                new_value=None,
                node_id=node_id,
                run_id=self.run_id,
            )
            self._record_change(change)

        await self._notify_listeners(change)
        return True

    async def _notify_listeners(self, change: StateChange) -> None:
        for listener in self._listeners:
            try:
                await listener(change)
            except Exception as e:
                logger.error(f"Memory listener error for key {change.key!r}: {e}")

    # === HISTORY ===

    def _record_change(self, change: StateChange) -> None:
        self._change_history.append(change)
        if len(self._change_history) > self._max_history:
            self._change_history = self._change_history[-self._max_history :]

    def get_recent_changes(self, limit: int = 10) -> list[StateChange]:
        return self._change_history[-limit:]
