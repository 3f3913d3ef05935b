"""Command builders: how the agent CLI is launched for a task."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from taskpilot.config.models import TaskpilotConfig
from taskpilot.supervisor.task import TaskConfig

logger = logging.getLogger(__name__)

#: Environment variable carrying the task id into the agent CLI.
TASK_ID_ENV = "TASKPILOT_TASK_ID"


@dataclass(frozen=True)
class CliCommand:
    """Executable plus the arguments that precede per-task arguments."""

    command: str
    args: list[str] = field(default_factory=list)


@runtime_checkable
class CommandBuilder(Protocol):
    """Supplies everything the supervisor needs to spawn the agent CLI.

    Results are used as-is; the supervisor never inspects them.
    """

    def get_cli_command(self) -> CliCommand: ...

    async def build_cli_args(self, config: TaskConfig) -> list[str]: ...

    async def build_environment(self, task_id: str) -> dict[str, str]: ...


class ConfiguredCommandBuilder:
    """``CommandBuilder`` driven by a ``TaskpilotConfig``.

    Produces ``<command> <base_args> run <prompt> --format <fmt>`` followed
    by ``--model``, ``--session`` and ``--agent`` when set.
    """

    def __init__(self, config: TaskpilotConfig) -> None:
        self._config = config

    def get_cli_command(self) -> CliCommand:
        cli = self._config.cli
        return CliCommand(command=cli.command, args=list(cli.base_args))

    async def build_cli_args(self, config: TaskConfig) -> list[str]:
        cli = self._config.cli
        args = ["run", config.prompt, "--format", cli.output_format]

        model = config.model_id or cli.model
        if model:
            args.extend(["--model", model])
        if config.session_id:
            args.extend(["--session", config.session_id])
        if cli.agent:
            args.extend(["--agent", cli.agent])
        return args

    async def build_environment(self, task_id: str) -> dict[str, str]:
        stripped = set(self._config.strip_env)
        env = {k: v for k, v in os.environ.items() if k not in stripped}
        env.update(self._config.environment)
        env[TASK_ID_ENV] = task_id
        if stripped:
            logger.debug("Stripped %d env vars for task %s", len(stripped), task_id)
        return env
