"""MessageRouter — turns decoded CLI messages into supervisor events."""

from __future__ import annotations

import json
import logging
import time
import uuid
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from taskpilot.completion.enforcer import CompletionEnforcer, StepFinishAction
from taskpilot.events import (
    CompleteStatus,
    DebugEvent,
    EventChannel,
    MessageEvent,
    ProgressEvent,
    StepFinishEvent,
    TodoUpdateEvent,
    ToolResultEvent,
    ToolUseEvent,
)
from taskpilot.helpers import render_error
from taskpilot.protocol.messages import (
    ErrorMessage,
    StepFinishMessage,
    StepStartMessage,
    TextMessage,
    TodoItem,
    ToolCallMessage,
    ToolResultMessage,
    ToolUseMessage,
    parse_message,
)
from taskpilot.supervisor.run import TaskRun
from taskpilot.tools import ToolNames

logger = logging.getLogger(__name__)

#: ``tool_use`` statuses that mean the result is already attached.
_FINISHED_TOOL_STATUSES = frozenset({"completed", "error"})

CompleteCallback = Callable[[CompleteStatus, str | None], None]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def todo_from_raw(raw: dict[str, Any]) -> TodoItem:
    """Build a checklist item, filling in whatever the agent left out."""
    return TodoItem(
        id=_as_text(raw.get("id")) or uuid.uuid4().hex,
        content=_as_text(raw.get("content")),
        status=_as_text(raw.get("status")) or "pending",
        priority=_as_text(raw.get("priority")) or "medium",
    )


class MessageRouter:
    """Routes one decoded message at a time for the supervisor.

    Updates the completion enforcer and the run's session tracker, and
    emits events on *events*.  Terminal outcomes go through *complete*,
    which owns the once-only latch.
    """

    def __init__(
        self,
        events: EventChannel,
        enforcer: CompletionEnforcer,
        complete: CompleteCallback,
        tool_names: ToolNames | None = None,
        on_step_start: Callable[[], None] | None = None,
        on_tool_call: Callable[[], None] | None = None,
    ) -> None:
        self._events = events
        self._enforcer = enforcer
        self._complete = complete
        self._tool_names = tool_names or ToolNames()
        self._on_step_start = on_step_start
        self._on_tool_call = on_tool_call
        self.model_name: str | None = None

    def route(self, raw: dict[str, Any], run: TaskRun) -> None:
        """Dispatch one decoded JSON object."""
        try:
            message = parse_message(raw)
        except ValidationError as exc:
            logger.warning("Malformed %s message: %s", raw.get("type"), exc)
            self._events.emit(
                DebugEvent(
                    type="parse-warning",
                    message=f"Malformed {raw.get('type')} message",
                    data={"errors": exc.errors(include_url=False)},
                )
            )
            return

        match message:
            case StepStartMessage():
                self._handle_step_start(message, run)
            case TextMessage():
                run.session.capture(message.part.session_id)
                self._events.emit(MessageEvent(message=raw))
            case ToolCallMessage():
                self._handle_tool_call(message, run)
            case ToolUseMessage():
                self._handle_tool_use(message, raw, run)
            case ToolResultMessage():
                self._events.emit(ToolResultEvent(output=_as_text(message.part.output)))
            case StepFinishMessage():
                self._handle_step_finish(message)
            case ErrorMessage():
                error = render_error(message.error)
                logger.error("Agent CLI reported an error: %s", error)
                self._complete("error", error)
            case None:
                logger.debug("Ignoring message with unknown type: %s", raw.get("type"))

    # ------------------------------------------------------------------ #
    # Message types
    # ------------------------------------------------------------------ #

    def _handle_step_start(self, message: StepStartMessage, run: TaskRun) -> None:
        run.session.capture(message.part.session_id)
        display = self.model_name or "AI"
        self._events.emit(
            ProgressEvent(
                stage="connecting",
                message=f"Connecting to {display}...",
                model_name=self.model_name,
            )
        )
        if self._on_step_start is not None:
            self._on_step_start()

    def _handle_tool_call(self, message: ToolCallMessage, run: TaskRun) -> None:
        name = message.part.tool or "unknown"
        tool_input = message.part.input
        self._handle_tool(name, tool_input, run)

    def _handle_tool_use(
        self, message: ToolUseMessage, raw: dict[str, Any], run: TaskRun
    ) -> None:
        name = message.part.tool or "unknown"
        state = message.part.state
        tool_input = state.input if state is not None else None
        self._handle_tool(name, tool_input, run)

        if isinstance(tool_input, dict):
            description = tool_input.get("description")
            if isinstance(description, str) and description:
                self._emit_text(description, run)
        self._events.emit(MessageEvent(message=raw))

        if state is not None and state.status in _FINISHED_TOOL_STATUSES:
            self._events.emit(ToolResultEvent(output=_as_text(state.output)))

    def _handle_step_finish(self, message: StepFinishMessage) -> None:
        part = message.part
        self._events.emit(
            StepFinishEvent(
                reason=part.reason,
                model=self.model_name,
                tokens=part.tokens,
                cost=part.cost,
            )
        )
        if part.reason == "error":
            self._complete("error", "Task failed")
            return

        action = self._enforcer.handle_step_finish(part.reason)
        if action is StepFinishAction.COMPLETE:
            self._complete("success", None)

    # ------------------------------------------------------------------ #
    # Tool bookkeeping
    # ------------------------------------------------------------------ #

    def _handle_tool(self, name: str, tool_input: Any, run: TaskRun) -> None:
        if self._on_tool_call is not None:
            self._on_tool_call()
        names = self._tool_names
        self._enforcer.mark_tools_used(
            counts_for_continuation=not names.is_non_task(name)
        )
        args = tool_input if isinstance(tool_input, dict) else {}

        if names.is_complete_task(name):
            detected = self._enforcer.handle_complete_task_detection(tool_input)
            if detected and self._enforcer.should_complete():
                summary = _as_text(args.get("summary"))
                if summary:
                    self._emit_text(summary, run)

        if names.is_start_task(name):
            self._handle_start_task(args, run)

        if names.is_todo_write(name):
            todos = args.get("todos")
            if isinstance(todos, list) and todos:
                items = [todo_from_raw(t) for t in todos if isinstance(t, dict)]
                self._publish_todos(items)

        self._emit_tool_use(name, tool_input)

    def _handle_start_task(self, args: dict[str, Any], run: TaskRun) -> None:
        if not args.get("needs_planning"):
            return
        self._enforcer.mark_task_requires_completion()

        goal = args.get("goal")
        steps = args.get("steps")
        if not goal or not isinstance(steps, list) or not steps:
            return

        numbered = "\n".join(f"{i}. {step}" for i, step in enumerate(steps, start=1))
        self._emit_text(f"**Plan:**\n\n**Goal:** {goal}\n\n**Steps:**\n{numbered}", run)
        items = [
            TodoItem(
                id=str(i),
                content=_as_text(step),
                status="in_progress" if i == 1 else "pending",
                priority="medium",
            )
            for i, step in enumerate(steps, start=1)
        ]
        self._publish_todos(items)

    def _publish_todos(self, items: list[TodoItem]) -> None:
        if not items:
            return
        self._events.emit(TodoUpdateEvent(items=items))
        self._enforcer.update_todos(items)

    # ------------------------------------------------------------------ #
    # Emission helpers
    # ------------------------------------------------------------------ #

    def _emit_tool_use(self, name: str, tool_input: Any) -> None:
        self._events.emit(ToolUseEvent(name=name, input=tool_input))
        self._events.emit(ProgressEvent(stage="tool-use", message=f"Using {name}"))

    def _emit_text(self, text: str, run: TaskRun) -> None:
        session_id = run.session.session_id
        message_id = f"msg_{uuid.uuid4().hex[:12]}"
        self._events.emit(
            MessageEvent(
                message={
                    "type": "text",
                    "timestamp": int(time.time() * 1000),
                    "sessionID": session_id,
                    "part": {
                        "id": message_id,
                        "sessionID": session_id,
                        "messageID": message_id,
                        "type": "text",
                        "text": text,
                    },
                }
            )
        )
