"""Runtime state: run context, shared memory, events and observers."""

from openflow.runtime.context import RunContext
from openflow.runtime.event_bus import EventBus, EventType, Subscription, WorkflowEvent
from openflow.runtime.observer import (
    EventBusObserver,
    NullObserver,
    RecordingObserver,
    WorkflowObserver,
)
from openflow.runtime.shared_state import SharedMemory, StateChange

__all__ = [
    # Context
    "RunContext",
    "SharedMemory",
    "StateChange",
    # Events
    "EventBus",
    "EventType",
    "WorkflowEvent",
    "Subscription",
    # Observers
    "WorkflowObserver",
    "NullObserver",
    "RecordingObserver",
    "EventBusObserver",
]
