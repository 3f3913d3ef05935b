"""Pydantic v2 models for taskpilot.yaml configuration."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from taskpilot.completion.state import DEFAULT_MAX_CONTINUATION_ATTEMPTS
from taskpilot.tools import (
    COMPLETE_TASK_TOOL,
    START_TASK_TOOL,
    TODO_WRITE_TOOL,
    ToolNames,
)


class CliSettings(BaseModel):
    """How to launch the agent CLI."""

    model_config = ConfigDict(extra="forbid")

    command: str = Field(
        default="opencode",
        description="Agent CLI executable, looked up on PATH",
    )
    base_args: list[str] = Field(
        default_factory=list,
        description="Arguments placed before the generated run arguments",
    )
    agent: str | None = Field(
        default=None,
        description="Agent profile passed as --agent",
    )
    model: str | None = Field(
        default=None,
        description="Model identifier passed verbatim as --model",
    )
    output_format: str = Field(
        default="json",
        description="Value of --format; must produce JSON messages",
    )

    @model_validator(mode="after")
    def _validate_command(self) -> CliSettings:
        if not self.command.strip():
            msg = "CLI 'command' must not be empty"
            raise ValueError(msg)
        return self


class CompletionSettings(BaseModel):
    """Completion enforcement settings."""

    model_config = ConfigDict(extra="forbid")

    max_continuation_attempts: int = Field(
        default=DEFAULT_MAX_CONTINUATION_ATTEMPTS,
        ge=0,
        description="Continuations allowed per task before giving up",
    )
    complete_task_tool: str = Field(
        default=COMPLETE_TASK_TOOL,
        description="Tool the agent calls to report completion",
    )
    todo_tool: str = Field(
        default=TODO_WRITE_TOOL,
        description="Tool the agent calls to replace its checklist",
    )
    start_task_tool: str = Field(
        default=START_TASK_TOOL,
        description="Tool the agent calls to announce its plan",
    )

    def tool_names(self) -> ToolNames:
        return ToolNames(
            complete_task=self.complete_task_tool,
            todo_write=self.todo_tool,
            start_task=self.start_task_tool,
        )


class TerminalSettings(BaseModel):
    """Pseudo-terminal geometry."""

    model_config = ConfigDict(extra="forbid")

    cols: int = Field(default=200, ge=1, description="Terminal width")
    rows: int = Field(default=30, ge=1, description="Terminal height")


class TaskpilotConfig(BaseModel):
    """Top-level taskpilot.yaml configuration."""

    model_config = ConfigDict(extra="forbid")

    version: str = Field(default="1", description="Config schema version")
    cli: CliSettings = Field(
        default_factory=CliSettings,
        description="Agent CLI launch settings",
    )
    working_directory: str | None = Field(
        default=None,
        description="Directory the agent runs in (default: system temp dir)",
    )
    environment: dict[str, str] = Field(
        default_factory=dict,
        description="Extra environment variables for the agent CLI",
    )
    strip_env: list[str] = Field(
        default_factory=list,
        description="Inherited environment variables removed before spawning",
    )
    completion: CompletionSettings = Field(
        default_factory=CompletionSettings,
        description="Completion enforcement settings",
    )
    terminal: TerminalSettings = Field(
        default_factory=TerminalSettings,
        description="Pseudo-terminal settings",
    )

    @model_validator(mode="after")
    def _validate_version(self) -> TaskpilotConfig:
        if self.version != "1":
            msg = f"Unsupported config version '{self.version}' — expected '1'"
            raise ValueError(msg)
        return self
