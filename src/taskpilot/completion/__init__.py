"""Completion enforcement — state machine, enforcer and continuation prompts."""

from taskpilot.completion.enforcer import (
    CompletionEnforcer,
    StepFinishAction,
    ToolActivity,
)
from taskpilot.completion.state import (
    DEFAULT_MAX_CONTINUATION_ATTEMPTS,
    CompleteTaskArgs,
    CompletionFlowState,
    CompletionState,
    InvalidTransitionError,
)

__all__ = [
    "DEFAULT_MAX_CONTINUATION_ATTEMPTS",
    "CompleteTaskArgs",
    "CompletionEnforcer",
    "CompletionFlowState",
    "CompletionState",
    "InvalidTransitionError",
    "StepFinishAction",
    "ToolActivity",
]
