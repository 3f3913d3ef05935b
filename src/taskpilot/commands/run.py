"""taskpilot run — drive one agent task to completion in the terminal."""

from __future__ import annotations

import asyncio
import collections
import logging
import signal
from dataclasses import dataclass
from pathlib import Path

import click

from taskpilot.config.models import TaskpilotConfig
from taskpilot.config.parser import ConfigError, load_config
from taskpilot.errors import SupervisorError
from taskpilot.events import (
    CompleteEvent,
    DebugEvent,
    ErrorEvent,
    MessageEvent,
    ProgressEvent,
    StepFinishEvent,
    TodoUpdateEvent,
    ToolUseEvent,
)
from taskpilot.helpers import format_output_preview
from taskpilot.supervisor.supervisor import ProcessSupervisor
from taskpilot.supervisor.task import TaskConfig

logger = logging.getLogger(__name__)

#: Recent output chunks kept for error reports.
_OUTPUT_HISTORY = 50

_TODO_MARKS = {
    "completed": "✓",
    "in_progress": "▸",
    "cancelled": "✗",
}


@dataclass
class RunOutcome:
    """How a ``taskpilot run`` invocation ended."""

    status: str
    session_id: str | None = None
    error: str | None = None


# ------------------------------------------------------------------ #
# Click command
# ------------------------------------------------------------------ #


@click.command()
@click.argument("prompt")
@click.option(
    "-c", "--config", "config_file", type=click.Path(), help="Config file path."
)
@click.option("--session", "session_id", default=None, help="Resume this session.")
@click.option("--model", "model_id", default=None, help="Override the model.")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output.")
def run(
    prompt: str,
    config_file: str | None,
    session_id: str | None,
    model_id: str | None,
    verbose: bool,
) -> None:
    """Run PROMPT through the agent CLI until the task is complete."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        config = load_config(Path(config_file) if config_file else None)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    task = TaskConfig(prompt=prompt, session_id=session_id, model_id=model_id)
    outcome = asyncio.run(_run_task(config, task, verbose))

    if outcome.session_id:
        click.echo(f"Session: {outcome.session_id}", err=True)

    match outcome.status:
        case "success":
            click.echo(click.style("✓ Task complete", fg="green"), err=True)
        case "interrupted" | "cancelled":
            click.echo(click.style(f"Task {outcome.status}", fg="yellow"), err=True)
            raise SystemExit(130)
        case _:
            click.echo(click.style(f"Error: {outcome.error}", fg="red"), err=True)
            raise SystemExit(1)


# ------------------------------------------------------------------ #
# Task runner
# ------------------------------------------------------------------ #


async def _run_task(
    config: TaskpilotConfig, task: TaskConfig, verbose: bool
) -> RunOutcome:
    """Start the task and wait for its single terminal outcome."""
    loop = asyncio.get_running_loop()
    done: asyncio.Future[RunOutcome] = loop.create_future()
    recent_output: collections.deque[str] = collections.deque(maxlen=_OUTPUT_HISTORY)
    background: set[asyncio.Task[None]] = set()

    def _finish(outcome: RunOutcome) -> None:
        if not done.done():
            done.set_result(outcome)

    async with ProcessSupervisor.from_config(config) as supervisor:
        _attach_printers(supervisor, verbose)

        def _on_stdout(event: DebugEvent) -> None:
            if event.type == "stdout":
                recent_output.append(event.message)
            elif verbose:
                click.echo(click.style(f"  [{event.type}] {event.message}", dim=True), err=True)

        def _on_complete(event: CompleteEvent) -> None:
            _finish(RunOutcome(event.status, event.session_id, event.error))

        def _on_error(event: ErrorEvent) -> None:
            message = str(event.error)
            preview = format_output_preview("".join(recent_output))
            if preview:
                message += f". Last output:\n  {preview}"
            _finish(RunOutcome("error", supervisor.session_id, message))

        supervisor.events.on(DebugEvent, _on_stdout)
        supervisor.events.on(CompleteEvent, _on_complete)
        supervisor.events.on(ErrorEvent, _on_error)

        interrupts = 0

        def _on_sigint() -> None:
            nonlocal interrupts
            interrupts += 1
            if interrupts == 1:
                click.echo("\nInterrupting... (press Ctrl+C again to cancel)", err=True)
                action = supervisor.interrupt_task()
            else:
                action = supervisor.cancel_task()
                _finish(RunOutcome("cancelled", supervisor.session_id))
            bg = loop.create_task(action)
            background.add(bg)
            bg.add_done_callback(background.discard)

        loop.add_signal_handler(signal.SIGINT, _on_sigint)
        try:
            try:
                await supervisor.start_task(task)
            except SupervisorError as exc:
                logger.error("Failed to start task: %s", exc)
                return RunOutcome("error", error=str(exc))
            return await done
        finally:
            loop.remove_signal_handler(signal.SIGINT)


def _attach_printers(supervisor: ProcessSupervisor, verbose: bool) -> None:
    """Echo agent output and activity to the terminal."""

    def _on_message(event: MessageEvent) -> None:
        if event.message.get("type") != "text":
            return
        part = event.message.get("part")
        text = part.get("text") if isinstance(part, dict) else None
        if text:
            click.echo(text)

    def _on_tool_use(event: ToolUseEvent) -> None:
        click.echo(click.style(f"  → {event.name}", fg="cyan"), err=True)

    def _on_todos(event: TodoUpdateEvent) -> None:
        for item in event.items:
            mark = _TODO_MARKS.get(item.status, "·")
            click.echo(f"    {mark} {item.content}", err=True)

    def _on_progress(event: ProgressEvent) -> None:
        if event.message:
            click.echo(click.style(f"  {event.message}", dim=True), err=True)

    def _on_step_finish(event: StepFinishEvent) -> None:
        if event.cost is not None:
            click.echo(
                click.style(f"  step {event.reason}: ${event.cost:.4f}", dim=True),
                err=True,
            )

    supervisor.events.on(MessageEvent, _on_message)
    supervisor.events.on(ToolUseEvent, _on_tool_use)
    supervisor.events.on(TodoUpdateEvent, _on_todos)
    if verbose:
        supervisor.events.on(ProgressEvent, _on_progress)
        supervisor.events.on(StepFinishEvent, _on_step_finish)
