"""Pydantic v2 models for the JSON messages emitted by the agent CLI."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    field_validator,
)

#: Todo statuses that still count as open work.
INCOMPLETE_TODO_STATUSES = frozenset({"pending", "in_progress"})


class _WireModel(BaseModel):
    """Lenient base: the CLI adds fields between releases."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ToolState(_WireModel):
    """Combined call/result state carried by ``tool_use`` parts."""

    status: str | None = Field(
        default=None,
        description="pending, running, completed or error",
    )
    input: Any = Field(default=None, description="Tool arguments")
    output: Any = Field(default=None, description="Tool output, once finished")


class MessagePart(_WireModel):
    """The ``part`` object attached to every non-error message."""

    session_id: str | None = Field(default=None, alias="sessionID")
    message_id: str | None = Field(default=None, alias="messageID")
    text: str | None = None
    tool: str | None = None
    input: Any = None
    output: Any = None
    state: ToolState | None = None
    reason: str | None = None
    tokens: dict[str, Any] | None = None
    cost: float | None = None

    @field_validator("tokens", mode="before")
    @classmethod
    def _tokens_or_none(cls, value: Any) -> Any:
        # Telemetry must never cost us the step_finish reason.
        return value if isinstance(value, dict) else None

    @field_validator("cost", mode="before")
    @classmethod
    def _cost_or_none(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, int | float):
            return None
        return value


class _MessageBase(_WireModel):
    part: MessagePart = Field(default_factory=MessagePart)


class StepStartMessage(_MessageBase):
    """Start of one reasoning/tool-use turn; carries the session id."""

    type: Literal["step_start"] = "step_start"


class TextMessage(_MessageBase):
    """Assistant text output."""

    type: Literal["text"] = "text"


class ToolCallMessage(_MessageBase):
    """Tool invocation with arguments in ``part.input``."""

    type: Literal["tool_call"] = "tool_call"


class ToolUseMessage(_MessageBase):
    """Combined tool call and result, arguments in ``part.state.input``."""

    type: Literal["tool_use"] = "tool_use"


class ToolResultMessage(_MessageBase):
    """Tool output in ``part.output``."""

    type: Literal["tool_result"] = "tool_result"


class StepFinishMessage(_MessageBase):
    """End of one turn; ``part.reason`` says why."""

    type: Literal["step_finish"] = "step_finish"


class ErrorMessage(_WireModel):
    """Fatal error reported by the CLI."""

    type: Literal["error"] = "error"
    error: Any = Field(default=None, description="Error text or error object")


def _message_discriminator(v: Any) -> str:
    if isinstance(v, dict):
        return str(v.get("type", ""))
    return str(getattr(v, "type", ""))


ParsedMessage = Annotated[
    Annotated[StepStartMessage, Tag("step_start")]
    | Annotated[TextMessage, Tag("text")]
    | Annotated[ToolCallMessage, Tag("tool_call")]
    | Annotated[ToolUseMessage, Tag("tool_use")]
    | Annotated[ToolResultMessage, Tag("tool_result")]
    | Annotated[StepFinishMessage, Tag("step_finish")]
    | Annotated[ErrorMessage, Tag("error")],
    Discriminator(_message_discriminator),
]
"""Discriminated union of all protocol message types."""

MESSAGE_TYPES = frozenset(
    {"step_start", "text", "tool_call", "tool_use", "tool_result", "step_finish", "error"}
)

_MESSAGE_ADAPTER: TypeAdapter[ParsedMessage] = TypeAdapter(ParsedMessage)


def parse_message(raw: dict[str, Any]) -> ParsedMessage | None:
    """Validate a decoded JSON object into a typed message.

    Returns ``None`` for unknown message types. Raises
    ``pydantic.ValidationError`` when a known type has malformed fields.
    """
    if raw.get("type") not in MESSAGE_TYPES:
        return None
    return _MESSAGE_ADAPTER.validate_python(raw)


class TodoItem(BaseModel):
    """One entry of the agent's self-maintained checklist."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(description="Todo identifier")
    content: str = Field(description="What needs doing")
    status: str = Field(
        default="pending",
        description="pending, in_progress, completed or cancelled",
    )
    priority: str = Field(default="medium", description="high, medium or low")

    @property
    def is_open(self) -> bool:
        return self.status in INCOMPLETE_TODO_STATUSES
