"""Exception types raised by the process supervisor."""

from __future__ import annotations


class SupervisorError(Exception):
    """Base class for supervisor misuse and subprocess failures."""


class DisposedError(SupervisorError):
    """Raised when a disposed supervisor is asked to start a task."""

    def __init__(self) -> None:
        super().__init__("Supervisor has been disposed and cannot start new tasks")


class NoActiveProcessError(SupervisorError):
    """Raised when stdin is written without a running subprocess."""

    def __init__(self) -> None:
        super().__init__("No active process")


class CliNotFoundError(SupervisorError):
    """Raised when the agent CLI executable cannot be spawned."""

    def __init__(self, command: str) -> None:
        self.command = command
        super().__init__(
            f"Agent CLI '{command}' is not available. "
            "Make sure it is installed and on your PATH."
        )


class ProcessExitError(SupervisorError):
    """Carried by an ``ErrorEvent`` when the CLI exits non-zero."""

    def __init__(self, exit_code: int | None) -> None:
        self.exit_code = exit_code
        super().__init__(f"Agent CLI exited with code {exit_code}")
