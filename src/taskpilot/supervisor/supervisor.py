"""ProcessSupervisor — runs the agent CLI on a PTY until the task really ends."""

from __future__ import annotations

import asyncio
import logging
import tempfile
from types import TracebackType
from typing import Any

from taskpilot.completion.enforcer import CompletionEnforcer
from taskpilot.completion.state import (
    DEFAULT_MAX_CONTINUATION_ATTEMPTS,
    CompletionFlowState,
)
from taskpilot.config.models import TaskpilotConfig
from taskpilot.errors import (
    CliNotFoundError,
    DisposedError,
    NoActiveProcessError,
    ProcessExitError,
    SupervisorError,
)
from taskpilot.events import (
    CompleteEvent,
    CompleteStatus,
    DebugEvent,
    ErrorEvent,
    EventChannel,
    ProgressEvent,
)
from taskpilot.helpers import strip_ansi, truncate
from taskpilot.protocol.stream_parser import StreamParser
from taskpilot.supervisor.command import CommandBuilder, ConfiguredCommandBuilder
from taskpilot.supervisor.pty_process import PtyProcess
from taskpilot.supervisor.router import MessageRouter
from taskpilot.supervisor.run import SessionTracker, TaskRun
from taskpilot.supervisor.task import Task, TaskConfig, new_task_id
from taskpilot.tools import ToolNames

logger = logging.getLogger(__name__)

#: Seconds after step_start before reporting that we are waiting on the model.
WAITING_TRANSITION_DELAY = 0.5

#: Byte written to the terminal to interrupt the agent (Ctrl+C).
_INTERRUPT = "\x03"


class ProcessSupervisor:
    """Drives one agent CLI subprocess at a time to completion.

    Each ``start_task`` spawns the CLI on a fresh pseudo-terminal.  When
    the agent stops without properly reporting completion, the
    supervisor transparently resumes the same session with a reminder
    prompt (bounded by *max_continuation_attempts*), so callers only ever
    see one ``CompleteEvent`` per task.

    Listeners subscribe through ``events``::

        supervisor.events.on(CompleteEvent, on_complete)
    """

    def __init__(
        self,
        builder: CommandBuilder,
        *,
        max_continuation_attempts: int = DEFAULT_MAX_CONTINUATION_ATTEMPTS,
        tool_names: ToolNames | None = None,
        cols: int = 200,
        rows: int = 30,
        temp_dir: str | None = None,
    ) -> None:
        self._builder = builder
        self._cols = cols
        self._rows = rows
        self._temp_dir = temp_dir
        self.events = EventChannel()

        self._process: PtyProcess | None = None
        self._run: TaskRun | None = None
        self._task_config: TaskConfig | None = None
        self._disposed = False
        self._waiting_handle: asyncio.TimerHandle | None = None

        self._parser = StreamParser(self._on_message, self._on_parse_warning)
        self._enforcer = CompletionEnforcer(
            on_start_continuation=self._spawn_session_resumption,
            on_complete=self._on_enforcer_complete,
            on_debug=self._on_enforcer_debug,
            max_continuation_attempts=max_continuation_attempts,
            tool_names=tool_names,
        )
        self._router = MessageRouter(
            self.events,
            self._enforcer,
            self._complete,
            tool_names=tool_names,
            on_step_start=self._arm_waiting_transition,
            on_tool_call=self._cancel_waiting_transition,
        )

    @classmethod
    def from_config(cls, config: TaskpilotConfig) -> ProcessSupervisor:
        """Build a supervisor whose command builder reads *config*."""
        return cls(
            ConfiguredCommandBuilder(config),
            max_continuation_attempts=config.completion.max_continuation_attempts,
            tool_names=config.completion.tool_names(),
            cols=config.terminal.cols,
            rows=config.terminal.rows,
            temp_dir=config.working_directory,
        )

    async def __aenter__(self) -> ProcessSupervisor:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.dispose()

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    @property
    def session_id(self) -> str | None:
        return self._run.session.session_id if self._run else None

    @property
    def task_id(self) -> str | None:
        return self._run.task_id if self._run else None

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def is_running(self) -> bool:
        return self._process is not None

    @property
    def completion_state(self) -> CompletionFlowState:
        return self._enforcer.state

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #

    async def start_task(self, config: TaskConfig) -> Task:
        """Spawn the agent CLI for a new task and return its descriptor.

        Returns as soon as the process is running; progress and the final
        outcome arrive as events.
        """
        if self._disposed:
            raise DisposedError()

        self._cancel_waiting_transition()
        if self._process is not None:
            logger.debug("Replacing running process for task %s", self.task_id)
            self._process.kill()
            self._process = None

        task_id = config.task_id or new_task_id()
        config = config.model_copy(update={"task_id": task_id})
        self._run = TaskRun(task_id=task_id, session=SessionTracker(config.session_id))
        self._task_config = config
        self._parser.reset()
        self._enforcer.reset()
        self._router.model_name = config.model_id

        await self._spawn(config)
        return Task(id=task_id, prompt=config.prompt)

    async def resume_session(self, session_id: str, prompt: str) -> Task:
        """Start a task that continues an existing agent CLI session."""
        return await self.start_task(TaskConfig(prompt=prompt, session_id=session_id))

    async def send_response(self, text: str) -> None:
        """Type *text* followed by Enter into the agent's terminal."""
        if self._process is None:
            raise NoActiveProcessError()
        self._process.write(text + "\n")

    async def interrupt_task(self) -> None:
        """Send Ctrl+C; the agent decides how to wind down."""
        if self._process is None or self._run is None:
            return
        self._process.write(_INTERRUPT)
        self._run.interrupted = True
        logger.info("Sent interrupt to task %s", self._run.task_id)

    async def cancel_task(self) -> None:
        """Kill the subprocess immediately; no further events follow."""
        self._cancel_waiting_transition()
        process = self._process
        self._process = None
        if self._run is not None:
            self._run.running = False
        if process is not None:
            process.kill()
            await process.wait()

    def dispose(self) -> None:
        """Kill the subprocess and detach every listener; safe to repeat."""
        if self._disposed:
            return
        self._disposed = True
        self._cancel_waiting_transition()
        if self._process is not None:
            self._process.kill()
            self._process = None
        self._run = None
        self._task_config = None
        self._parser.reset()
        self._enforcer.reset()
        self.events.clear()

    # ------------------------------------------------------------------ #
    # Spawning
    # ------------------------------------------------------------------ #

    async def _spawn(self, config: TaskConfig) -> None:
        assert config.task_id is not None
        run = self._run
        cli = self._builder.get_cli_command()
        args = [*cli.args, *await self._builder.build_cli_args(config)]
        env = await self._builder.build_environment(config.task_id)
        cwd = config.working_directory or self._temp_dir or tempfile.gettempdir()

        # Building args awaits; the task may have been cancelled meanwhile.
        if self._disposed or run is not self._run:
            return

        logger.info("Spawning %s for task %s in %s", cli.command, config.task_id, cwd)
        logger.debug("Arguments: %s", truncate(" ".join(args)))
        self.events.emit(
            DebugEvent(
                type="info",
                message=f"Spawning {cli.command}",
                data={"command": cli.command, "args": args, "cwd": cwd},
            )
        )

        try:
            process = await PtyProcess.spawn(
                cli.command,
                args,
                on_data=self._on_data,
                on_exit=lambda code: self._handle_exit(run, code),
                env=env,
                cwd=cwd,
                cols=self._cols,
                rows=self._rows,
            )
        except FileNotFoundError as exc:
            raise CliNotFoundError(cli.command) from exc

        self._process = process
        if run is not None:
            run.running = True
        self.events.emit(
            DebugEvent(
                type="info",
                message=f"Process started (pid {process.pid})",
                data={"pid": process.pid},
            )
        )
        self.events.emit(ProgressEvent(stage="loading", message="Loading agent..."))

    async def _spawn_session_resumption(self, prompt: str) -> None:
        """Start a continuation: a new CLI run resuming the current session."""
        if self._run is None or self._task_config is None:
            logger.warning("Continuation requested without an active task")
            return
        session_id = self._run.session.session_id
        if session_id is None:
            msg = "No session ID available for session resumption"
            raise SupervisorError(msg)
        config = self._task_config.model_copy(
            update={"prompt": prompt, "session_id": session_id}
        )
        self._parser.reset()
        logger.info(
            "Resuming session %s for task %s", session_id, self._run.task_id
        )
        await self._spawn(config)

    # ------------------------------------------------------------------ #
    # Process callbacks
    # ------------------------------------------------------------------ #

    def _on_data(self, data: str) -> None:
        cleaned = strip_ansi(data)
        if cleaned.strip():
            logger.debug("stdout: %s", truncate(cleaned))
            self.events.emit(DebugEvent(type="stdout", message=cleaned))
        self._parser.feed(cleaned)

    def _on_message(self, message: dict[str, Any]) -> None:
        if self._run is None:
            return
        self._router.route(message, self._run)

    def _on_parse_warning(self, warning: str) -> None:
        logger.warning("Stream parse warning: %s", truncate(warning))
        self.events.emit(DebugEvent(type="parse-warning", message=warning))

    async def _handle_exit(self, run: TaskRun | None, code: int | None) -> None:
        if run is None or run is not self._run:
            return
        self._process = None
        run.running = False
        self._cancel_waiting_transition()
        self._parser.flush()

        logger.info("Agent CLI exited with code %s (task %s)", code, run.task_id)
        self.events.emit(
            DebugEvent(
                type="exit",
                message=f"Process exited with code {code}",
                data={"exitCode": code},
            )
        )

        if run.completed:
            return
        if run.interrupted and code == 0:
            self._complete("interrupted", None)
        elif code == 0:
            try:
                await self._enforcer.handle_process_exit(code)
            except Exception as exc:
                logger.exception("Failed to continue task %s", run.task_id)
                self._complete("error", f"Failed to complete: {exc}")
        else:
            self.events.emit(ErrorEvent(error=ProcessExitError(code)))

    # ------------------------------------------------------------------ #
    # Completion
    # ------------------------------------------------------------------ #

    def _complete(self, status: CompleteStatus, error: str | None) -> None:
        run = self._run
        if run is None or not run.latch():
            return
        self._cancel_waiting_transition()
        logger.info("Task %s completed with status %s", run.task_id, status)
        self.events.emit(
            CompleteEvent(status=status, session_id=run.session.session_id, error=error)
        )

    def _on_enforcer_complete(self) -> None:
        self._complete("success", None)

    def _on_enforcer_debug(self, debug_type: str, message: str, data: Any) -> None:
        self.events.emit(DebugEvent(type=debug_type, message=message, data=data))

    # ------------------------------------------------------------------ #
    # Waiting transition
    # ------------------------------------------------------------------ #

    def _arm_waiting_transition(self) -> None:
        self._cancel_waiting_transition()
        loop = asyncio.get_running_loop()
        self._waiting_handle = loop.call_later(
            WAITING_TRANSITION_DELAY, self._emit_waiting
        )

    def _cancel_waiting_transition(self) -> None:
        if self._waiting_handle is not None:
            self._waiting_handle.cancel()
            self._waiting_handle = None

    def _emit_waiting(self) -> None:
        self._waiting_handle = None
        if self._run is None or self._run.completed:
            return
        self.events.emit(
            ProgressEvent(stage="waiting", message="Waiting for response...")
        )
