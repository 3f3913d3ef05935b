"""Wire protocol — message models and the fragment-tolerant stream parser."""

from taskpilot.protocol.messages import (
    ErrorMessage,
    MessagePart,
    ParsedMessage,
    StepFinishMessage,
    StepStartMessage,
    TextMessage,
    TodoItem,
    ToolCallMessage,
    ToolResultMessage,
    ToolState,
    ToolUseMessage,
    parse_message,
)
from taskpilot.protocol.stream_parser import StreamParser

__all__ = [
    "ErrorMessage",
    "MessagePart",
    "ParsedMessage",
    "StepFinishMessage",
    "StepStartMessage",
    "StreamParser",
    "TextMessage",
    "TodoItem",
    "ToolCallMessage",
    "ToolResultMessage",
    "ToolState",
    "ToolUseMessage",
    "parse_message",
]
