"""Explicit state machine behind completion enforcement."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

#: Continuation budget shared by plain and partial continuations.
DEFAULT_MAX_CONTINUATION_ATTEMPTS = 20


class CompletionFlowState(Enum):
    IDLE = "idle"
    BLOCKED = "blocked"
    PARTIAL_CONTINUATION_PENDING = "partial_continuation_pending"
    CONTINUATION_PENDING = "continuation_pending"
    MAX_RETRIES_REACHED = "max_retries_reached"
    DONE = "done"


#: States only ``reset()`` can leave.
TERMINAL_STATES = frozenset(
    {
        CompletionFlowState.BLOCKED,
        CompletionFlowState.MAX_RETRIES_REACHED,
        CompletionFlowState.DONE,
    }
)


class InvalidTransitionError(Exception):
    """Raised when a transition is requested from the wrong state."""

    def __init__(self, action: str, state: CompletionFlowState) -> None:
        self.action = action
        self.state = state
        super().__init__(f"Cannot {action} from state {state.name}")


class CompleteTaskArgs(BaseModel):
    """Arguments of the agent's complete-task call."""

    status: str = Field(default="unknown", description="success, partial or blocked")
    summary: str = Field(default="", description="What the agent says it did")
    original_request_summary: str = Field(
        default="", description="The agent's restatement of the request"
    )
    remaining_work: str | None = Field(
        default=None, description="What the agent says is left (partial claims)"
    )

    @classmethod
    def from_tool_input(cls, tool_input: Any) -> CompleteTaskArgs:
        """Build args from raw tool input, treating missing or empty values as unset."""
        raw = tool_input if isinstance(tool_input, dict) else {}

        def _text(key: str) -> str | None:
            value = raw.get(key)
            if value is None or value == "":
                return None
            return value if isinstance(value, str) else str(value)

        return cls(
            status=_text("status") or "unknown",
            summary=_text("summary") or "",
            original_request_summary=_text("original_request_summary") or "",
            remaining_work=_text("remaining_work"),
        )


class CompletionState:
    """Tracks one task's completion flow and its continuation budget."""

    def __init__(
        self, max_continuation_attempts: int = DEFAULT_MAX_CONTINUATION_ATTEMPTS
    ) -> None:
        self._max_continuation_attempts = max_continuation_attempts
        self._state = CompletionFlowState.IDLE
        self._continuation_attempts = 0
        self._complete_task_args: CompleteTaskArgs | None = None

    @property
    def state(self) -> CompletionFlowState:
        return self._state

    @property
    def continuation_attempts(self) -> int:
        return self._continuation_attempts

    @property
    def max_continuation_attempts(self) -> int:
        return self._max_continuation_attempts

    @property
    def complete_task_args(self) -> CompleteTaskArgs | None:
        return self._complete_task_args

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def is_pending_continuation(self) -> bool:
        return self._state is CompletionFlowState.CONTINUATION_PENDING

    @property
    def is_pending_partial_continuation(self) -> bool:
        return self._state is CompletionFlowState.PARTIAL_CONTINUATION_PENDING

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #

    def record_complete_task_call(self, args: CompleteTaskArgs) -> None:
        if self.is_terminal:
            raise InvalidTransitionError("record complete_task call", self._state)
        self._complete_task_args = args
        if args.status == "success":
            self._state = CompletionFlowState.DONE
        elif args.status == "partial":
            self._state = CompletionFlowState.PARTIAL_CONTINUATION_PENDING
        else:
            self._state = CompletionFlowState.BLOCKED

    def schedule_continuation(self) -> bool:
        """Spend one attempt on a plain continuation.

        Returns False (and moves to ``MAX_RETRIES_REACHED``) once the
        budget is exhausted, or when no continuation can be scheduled
        from the current state.
        """
        if self._state not in (
            CompletionFlowState.IDLE,
            CompletionFlowState.CONTINUATION_PENDING,
        ):
            return False
        if not self._spend_attempt():
            return False
        self._state = CompletionFlowState.CONTINUATION_PENDING
        return True

    def start_continuation(self) -> None:
        if self._state is not CompletionFlowState.CONTINUATION_PENDING:
            raise InvalidTransitionError("start continuation", self._state)
        self._state = CompletionFlowState.IDLE

    def start_partial_continuation(self) -> bool:
        """Spend one attempt on a partial continuation; False if over budget."""
        if self._state is not CompletionFlowState.PARTIAL_CONTINUATION_PENDING:
            raise InvalidTransitionError("start partial continuation", self._state)
        if not self._spend_attempt():
            return False
        self._state = CompletionFlowState.IDLE
        return True

    def reset(self) -> None:
        self._state = CompletionFlowState.IDLE
        self._continuation_attempts = 0
        self._complete_task_args = None

    def _spend_attempt(self) -> bool:
        self._continuation_attempts += 1
        if self._continuation_attempts > self._max_continuation_attempts:
            self._state = CompletionFlowState.MAX_RETRIES_REACHED
            return False
        return True
