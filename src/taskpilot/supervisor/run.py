"""Per-run bookkeeping: session identity and the terminal-signal latch."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class SessionTracker:
    """Remembers the agent CLI's session id for a task.

    The id is captured from the first message that carries one and is
    then fixed; later messages cannot overwrite it.  Continuations resume
    this session.
    """

    def __init__(self, session_id: str | None = None) -> None:
        self._session_id = session_id

    @property
    def session_id(self) -> str | None:
        return self._session_id

    def capture(self, session_id: str | None) -> bool:
        """Store *session_id* if none is known yet; True if it was stored."""
        if not session_id or self._session_id is not None:
            return False
        self._session_id = session_id
        logger.debug("Session id captured: %s", session_id)
        return True


@dataclass
class TaskRun:
    """State of one logical task, including any continuations."""

    task_id: str
    session: SessionTracker = field(default_factory=SessionTracker)
    running: bool = False
    completed: bool = False
    interrupted: bool = False

    def latch(self) -> bool:
        """Mark the task complete; False if it already was."""
        if self.completed:
            return False
        self.completed = True
        return True
