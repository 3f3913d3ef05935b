"""Process supervision — PTY subprocess, message routing and task runs."""

from taskpilot.supervisor.command import (
    CliCommand,
    CommandBuilder,
    ConfiguredCommandBuilder,
)
from taskpilot.supervisor.pty_process import PtyProcess
from taskpilot.supervisor.router import MessageRouter
from taskpilot.supervisor.run import SessionTracker, TaskRun
from taskpilot.supervisor.supervisor import ProcessSupervisor
from taskpilot.supervisor.task import Task, TaskConfig

__all__ = [
    "CliCommand",
    "CommandBuilder",
    "ConfiguredCommandBuilder",
    "MessageRouter",
    "ProcessSupervisor",
    "PtyProcess",
    "SessionTracker",
    "Task",
    "TaskConfig",
    "TaskRun",
]
