"""Task request and descriptor models."""

from __future__ import annotations

import time
import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


def new_task_id() -> str:
    """Return a unique, roughly time-ordered task id."""
    return f"task_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


class TaskConfig(BaseModel):
    """What to run: the prompt plus optional overrides."""

    model_config = ConfigDict(extra="forbid")

    prompt: str = Field(description="User prompt sent to the agent")
    task_id: str | None = Field(default=None, description="Explicit task id")
    session_id: str | None = Field(
        default=None,
        description="Agent CLI session to resume",
    )
    working_directory: str | None = Field(
        default=None,
        description="Directory the agent runs in",
    )
    model_id: str | None = Field(
        default=None,
        description="Model override passed through to the agent CLI",
    )


class Task(BaseModel):
    """Descriptor returned to the caller when a task is started."""

    id: str
    prompt: str
    status: Literal["running"] = "running"
    messages: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
