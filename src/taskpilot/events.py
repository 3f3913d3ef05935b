"""Typed events emitted by the process supervisor, and the channel carrying them."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from taskpilot.protocol.messages import TodoItem

logger = logging.getLogger(__name__)

CompleteStatus = Literal["success", "error", "interrupted"]


class _EventBase(BaseModel):
    """Common configuration shared by every supervisor event."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)


class DebugEvent(_EventBase):
    """Diagnostic detail for a debug panel; never drives control flow."""

    kind: Literal["debug"] = "debug"
    type: str = Field(description="info, stdout, exit, parse-warning, continuation, ...")
    message: str = Field(description="Human-readable detail")
    data: Any = Field(default=None, description="Optional structured payload")


class ProgressEvent(_EventBase):
    """Startup/activity stage for status indicators."""

    kind: Literal["progress"] = "progress"
    stage: str = Field(description="loading, connecting, waiting or tool-use")
    message: str | None = None
    model_name: str | None = None


class MessageEvent(_EventBase):
    """A protocol message forwarded verbatim (or a synthetic text message)."""

    kind: Literal["message"] = "message"
    message: dict[str, Any] = Field(description="The decoded JSON message")


class ToolUseEvent(_EventBase):
    """The agent invoked a tool."""

    kind: Literal["tool-use"] = "tool-use"
    name: str = Field(description="Tool name, possibly MCP-prefixed")
    input: Any = Field(default=None, description="Tool arguments")


class ToolResultEvent(_EventBase):
    """A tool returned output."""

    kind: Literal["tool-result"] = "tool-result"
    output: str = Field(description="Tool output text")


class TodoUpdateEvent(_EventBase):
    """The agent replaced its checklist."""

    kind: Literal["todo:update"] = "todo:update"
    items: list[TodoItem] = Field(description="Full checklist snapshot")


class StepFinishEvent(_EventBase):
    """A reasoning/tool-use turn ended; carries usage telemetry when present."""

    kind: Literal["step-finish"] = "step-finish"
    reason: str | None = None
    model: str | None = None
    tokens: dict[str, Any] | None = None
    cost: float | None = None


class CompleteEvent(_EventBase):
    """The one terminal signal of a logical task."""

    kind: Literal["complete"] = "complete"
    status: CompleteStatus
    session_id: str | None = None
    error: str | None = None


class ErrorEvent(_EventBase):
    """The subprocess failed without a completion being reported."""

    kind: Literal["error"] = "error"
    error: Exception


SupervisorEvent = (
    DebugEvent
    | ProgressEvent
    | MessageEvent
    | ToolUseEvent
    | ToolResultEvent
    | TodoUpdateEvent
    | StepFinishEvent
    | CompleteEvent
    | ErrorEvent
)

E = TypeVar("E", bound=_EventBase)


class EventChannel:
    """Per-event-class listener registry.

    Listeners are registered against an event class and receive only
    instances of exactly that class, synchronously and in emission order.
    """

    def __init__(self) -> None:
        self._listeners: dict[type[_EventBase], list[Callable[[Any], None]]] = (
            defaultdict(list)
        )

    def on(self, event_type: type[E], listener: Callable[[E], None]) -> None:
        """Register *listener* for events of *event_type*."""
        self._listeners[event_type].append(listener)

    def off(self, event_type: type[E], listener: Callable[[E], None]) -> None:
        """Remove a previously registered listener (no-op if absent)."""
        listeners = self._listeners.get(event_type)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def emit(self, event: SupervisorEvent) -> None:
        """Deliver *event* to every listener registered for its class."""
        for listener in list(self._listeners.get(type(event), ())):
            listener(event)

    def listener_count(self, event_type: type[_EventBase] | None = None) -> int:
        """Number of listeners for *event_type*, or in total."""
        if event_type is not None:
            return len(self._listeners.get(event_type, ()))
        return sum(len(v) for v in self._listeners.values())

    def clear(self) -> None:
        """Detach every listener."""
        self._listeners.clear()
