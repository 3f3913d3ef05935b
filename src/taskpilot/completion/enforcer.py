"""CompletionEnforcer — decides when an agent task is really finished.

The wrapped agent is not reliable about declaring completion.  It may stop
its process mid-task, or claim success while items on its own checklist are
still open.  The enforcer watches the signals the supervisor forwards
(tool calls, checklist updates, step-finish reasons, process exit) and either:

* lets the task complete,
* holds completion back until the process exits, then starts a
  *continuation* (a fresh CLI run in the same session with a reminder
  prompt), or
* gives up after a bounded number of continuations and reports success
  rather than stalling the user forever.

The enforcer never spawns anything itself; the supervisor supplies
``on_start_continuation`` and ``on_complete`` callbacks.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import Enum, StrEnum
from typing import Any

from taskpilot.completion.prompts import (
    continuation_prompt,
    incomplete_todos_prompt,
    partial_continuation_prompt,
)
from taskpilot.completion.state import (
    DEFAULT_MAX_CONTINUATION_ATTEMPTS,
    CompleteTaskArgs,
    CompletionFlowState,
    CompletionState,
)
from taskpilot.protocol.messages import TodoItem
from taskpilot.tools import ToolNames

logger = logging.getLogger(__name__)

#: Step-finish reasons that mean the agent ended its turn.
_FINAL_REASONS = frozenset({"stop", "end_turn"})

StartContinuationCallback = Callable[[str], Awaitable[None]]
CompleteCallback = Callable[[], None]
DebugCallback = Callable[[str, str, Any], None]


class StepFinishAction(StrEnum):
    CONTINUE = "continue"
    PENDING = "pending"
    COMPLETE = "complete"


class ToolActivity(Enum):
    """Task-work tool usage observed during the current task."""

    NONE = "none"
    CURRENT = "current"
    PRIOR = "prior"


class CompletionEnforcer:
    """Coordinates continuation and completion around a ``CompletionState``."""

    def __init__(
        self,
        on_start_continuation: StartContinuationCallback,
        on_complete: CompleteCallback,
        on_debug: DebugCallback | None = None,
        max_continuation_attempts: int = DEFAULT_MAX_CONTINUATION_ATTEMPTS,
        tool_names: ToolNames | None = None,
    ) -> None:
        self._on_start_continuation = on_start_continuation
        self._on_complete = on_complete
        self._on_debug = on_debug
        self._tool_names = tool_names or ToolNames()
        self._state = CompletionState(max_continuation_attempts)
        self._todos: list[TodoItem] = []
        self._tool_activity = ToolActivity.NONE
        self._requires_completion = False

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> CompletionFlowState:
        return self._state.state

    @property
    def continuation_attempts(self) -> int:
        return self._state.continuation_attempts

    @property
    def complete_task_args(self) -> CompleteTaskArgs | None:
        return self._state.complete_task_args

    @property
    def todos(self) -> list[TodoItem]:
        return list(self._todos)

    @property
    def tool_activity(self) -> ToolActivity:
        return self._tool_activity

    def should_complete(self) -> bool:
        """True once the flow has reached a terminal state."""
        return self._state.is_terminal

    # ------------------------------------------------------------------ #
    # Signals from the supervisor
    # ------------------------------------------------------------------ #

    def update_todos(self, todos: list[TodoItem]) -> None:
        """Replace the checklist snapshot."""
        self._todos = list(todos)
        if todos:
            self._requires_completion = True
        self._debug(
            "todo_update",
            f"Todo list updated: {len(todos)} items",
            {"todos": [t.model_dump() for t in todos]},
        )

    def mark_tools_used(self, counts_for_continuation: bool = True) -> None:
        """Record a tool call; bookkeeping tools pass ``False``."""
        if counts_for_continuation:
            self._tool_activity = ToolActivity.CURRENT

    def mark_task_requires_completion(self) -> None:
        self._requires_completion = True

    def handle_complete_task_detection(self, tool_input: Any) -> bool:
        """Record a complete-task claim.

        A success claim made while checklist items are still open is
        downgraded to ``partial``.  Returns False if a claim was already
        final for this task.
        """
        if self._state.is_terminal:
            return False

        args = CompleteTaskArgs.from_tool_input(tool_input)

        if args.status == "success" and self._has_incomplete_todos():
            open_items = self._incomplete_todos_summary()
            self._debug(
                "incomplete_todos",
                "Agent claimed success but has incomplete todos - downgrading to partial",
                {"incompleteTodos": open_items},
            )
            args = args.model_copy(
                update={"status": "partial", "remaining_work": open_items}
            )

        self._state.record_complete_task_call(args)
        self._debug(
            "complete_task",
            f"complete_task detected with status: {args.status}",
            {"args": args.model_dump(), "state": self._state.state.name},
        )
        return True

    def handle_step_finish(self, reason: str | None) -> StepFinishAction:
        """Decide what a step-finish means for completion."""
        if reason not in _FINAL_REASONS:
            return StepFinishAction.CONTINUE

        if self._state.is_pending_partial_continuation:
            args = self._state.complete_task_args
            self._debug(
                "partial_continuation",
                "Scheduling continuation for partial completion",
                {"remainingWork": args.remaining_work if args else None},
            )
            return StepFinishAction.PENDING

        if self._state.is_terminal:
            return StepFinishAction.COMPLETE

        if self._is_conversational_turn():
            self._debug(
                "skip_continuation",
                "No tools used and no complete_task called - treating as conversational response",
            )
            return StepFinishAction.COMPLETE

        if self._state.schedule_continuation():
            self._debug(
                "continuation",
                f"Scheduled continuation prompt (attempt {self._state.continuation_attempts})",
            )
            return StepFinishAction.PENDING

        logger.warning(
            "Agent stopped without %s. State: %s, attempts: %d/%d",
            self._tool_names.complete_task,
            self._state.state.name,
            self._state.continuation_attempts,
            self._state.max_continuation_attempts,
        )
        self._debug(
            "max_retries",
            "Continuation budget exhausted - completing without complete_task",
        )
        return StepFinishAction.COMPLETE

    async def handle_process_exit(self, exit_code: int | None) -> None:
        """Start a pending continuation, or signal completion."""
        if exit_code == 0 and self._state.is_pending_partial_continuation:
            await self._start_partial_continuation()
            return

        if exit_code == 0 and self._state.is_pending_continuation:
            self._state.start_continuation()
            self._debug(
                "continuation",
                f"Starting continuation task (attempt {self._state.continuation_attempts})",
            )
            self._demote_tool_activity()
            await self._on_start_continuation(
                continuation_prompt(self._tool_names.complete_task)
            )
            return

        self._on_complete()

    def reset(self) -> None:
        """Start over for a new top-level task."""
        self._state.reset()
        self._todos = []
        self._tool_activity = ToolActivity.NONE
        self._requires_completion = False

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    async def _start_partial_continuation(self) -> None:
        args = self._state.complete_task_args or CompleteTaskArgs()
        if self._has_incomplete_todos():
            prompt = incomplete_todos_prompt(
                self._incomplete_todos_summary(),
                complete_task_tool=self._tool_names.complete_task,
                todo_tool=self._tool_names.todo_write,
            )
        else:
            prompt = partial_continuation_prompt(
                args.remaining_work or "No remaining work specified",
                args.original_request_summary or "Unknown request",
                args.summary or "No summary provided",
                complete_task_tool=self._tool_names.complete_task,
            )

        if not self._state.start_partial_continuation():
            logger.warning("Max partial continuation attempts reached")
            self._debug(
                "max_retries",
                "Continuation budget exhausted after partial completion",
            )
            self._on_complete()
            return

        self._debug(
            "partial_continuation",
            f"Starting partial continuation (attempt {self._state.continuation_attempts})",
            {
                "remainingWork": args.remaining_work,
                "summary": args.summary,
                "continuationPrompt": prompt,
            },
        )
        self._demote_tool_activity()
        await self._on_start_continuation(prompt)

    def _demote_tool_activity(self) -> None:
        # A continuation has to show fresh tool use of its own.
        if self._tool_activity is ToolActivity.CURRENT:
            self._tool_activity = ToolActivity.PRIOR

    def _is_conversational_turn(self) -> bool:
        return self._tool_activity is ToolActivity.NONE and not self._requires_completion

    def _has_incomplete_todos(self) -> bool:
        return any(t.is_open for t in self._todos)

    def _incomplete_todos_summary(self) -> str:
        return "\n".join(f"- {t.content}" for t in self._todos if t.is_open)

    def _debug(self, debug_type: str, message: str, data: Any = None) -> None:
        logger.debug("[%s] %s", debug_type, message)
        if self._on_debug is not None:
            self._on_debug(debug_type, message, data)
