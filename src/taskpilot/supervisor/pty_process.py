"""A child process attached to a pseudo-terminal, driven by the asyncio loop."""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import errno
import fcntl
import logging
import os
import signal
import struct
import termios
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

#: Bytes read from the PTY master per readiness callback.
_READ_SIZE = 65536

DataCallback = Callable[[str], None]
ExitCallback = Callable[[int | None], Awaitable[None]]


def _set_terminal_size(fd: int, cols: int, rows: int) -> None:
    safe_cols = max(1, int(cols))
    safe_rows = max(1, int(rows))
    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", safe_rows, safe_cols, 0, 0))


def _become_terminal_session_leader() -> None:
    # Runs in the child between fork and exec.  Making the PTY the
    # controlling terminal is what turns a written 0x03 into SIGINT.
    os.setsid()
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


class PtyProcess:
    """Owns one child process and the master side of its terminal.

    Output is decoded as UTF-8 (invalid bytes replaced) and delivered to
    ``on_data`` in arrival order.  ``on_exit`` is awaited exactly once,
    after the child has been reaped and the remaining output drained, so
    no data callback ever follows it.  ``kill()`` detaches both callbacks
    first; a killed process reports nothing further.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        master_fd: int,
        on_data: DataCallback,
        on_exit: ExitCallback,
    ) -> None:
        self._process = process
        self._master_fd: int | None = master_fd
        self._on_data: DataCallback | None = on_data
        self._on_exit: ExitCallback | None = on_exit
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._loop = asyncio.get_running_loop()
        self._reading = False
        self._wait_task: asyncio.Task[None] | None = None

    @classmethod
    async def spawn(
        cls,
        command: str,
        args: list[str],
        *,
        on_data: DataCallback,
        on_exit: ExitCallback,
        env: dict[str, str] | None = None,
        cwd: str | None = None,
        cols: int = 200,
        rows: int = 30,
    ) -> PtyProcess:
        """Start *command* with stdin, stdout and stderr on a fresh PTY.

        Raises ``FileNotFoundError`` when the executable does not exist.
        """
        master_fd, slave_fd = os.openpty()
        try:
            _set_terminal_size(slave_fd, cols, rows)
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                env=env,
                cwd=cwd,
                close_fds=True,
                preexec_fn=_become_terminal_session_leader,
            )
        except BaseException:
            with contextlib.suppress(OSError):
                os.close(master_fd)
            with contextlib.suppress(OSError):
                os.close(slave_fd)
            raise

        with contextlib.suppress(OSError):
            os.close(slave_fd)
        os.set_blocking(master_fd, False)

        pty = cls(process, master_fd, on_data, on_exit)
        pty._start()
        logger.debug("Spawned %s (pid %d) on pty fd %d", command, process.pid, master_fd)
        return pty

    @property
    def pid(self) -> int:
        return self._process.pid

    # ------------------------------------------------------------------ #
    # Control
    # ------------------------------------------------------------------ #

    def write(self, data: str) -> None:
        """Write *data* to the child's terminal input."""
        if self._master_fd is None:
            msg = "PTY is closed"
            raise OSError(errno.EBADF, msg)
        payload = data.encode("utf-8")
        while payload:
            written = os.write(self._master_fd, payload)
            payload = payload[written:]

    def kill(self) -> None:
        """Force-kill the child's process group; no callbacks fire afterwards."""
        self._on_data = None
        self._on_exit = None
        if self._process.returncode is None:
            try:
                os.killpg(self._process.pid, signal.SIGKILL)
            except (ProcessLookupError, PermissionError):
                with contextlib.suppress(ProcessLookupError):
                    self._process.kill()
        self._close_master()

    def close(self) -> None:
        """Idempotent alias of ``kill()`` for owners that just release it."""
        self.kill()

    async def wait(self) -> int | None:
        """Wait until the child has exited and the exit callback has run."""
        if self._wait_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.shield(self._wait_task)
        return self._process.returncode

    # ------------------------------------------------------------------ #
    # Reading
    # ------------------------------------------------------------------ #

    def _start(self) -> None:
        assert self._master_fd is not None
        self._loop.add_reader(self._master_fd, self._on_readable)
        self._reading = True
        self._wait_task = asyncio.create_task(self._wait_for_exit())

    def _on_readable(self) -> None:
        if not self._read_available():
            self._stop_reading()

    def _read_available(self) -> bool:
        """Read what is ready; False once the terminal reports end of output."""
        if self._master_fd is None:
            return False
        try:
            chunk = os.read(self._master_fd, _READ_SIZE)
        except BlockingIOError:
            return True
        except OSError as exc:
            # Linux reports EIO on the master once every slave fd is closed.
            if exc.errno != errno.EIO:
                logger.debug("PTY read failed: %s", exc)
            return False
        if not chunk:
            return False
        self._deliver(self._decoder.decode(chunk))
        return True

    def _drain(self) -> None:
        if self._master_fd is None:
            return
        while True:
            try:
                chunk = os.read(self._master_fd, _READ_SIZE)
            except OSError:
                break
            if not chunk:
                break
            self._deliver(self._decoder.decode(chunk))
        self._deliver(self._decoder.decode(b"", final=True))

    def _deliver(self, text: str) -> None:
        if text and self._on_data is not None:
            self._on_data(text)

    def _stop_reading(self) -> None:
        if self._reading and self._master_fd is not None:
            self._loop.remove_reader(self._master_fd)
        self._reading = False

    def _close_master(self) -> None:
        self._stop_reading()
        if self._master_fd is not None:
            with contextlib.suppress(OSError):
                os.close(self._master_fd)
            self._master_fd = None

    async def _wait_for_exit(self) -> None:
        code = await self._process.wait()
        self._drain()
        self._close_master()
        logger.debug("Process %d exited with code %s", self._process.pid, code)
        on_exit = self._on_exit
        self._on_data = None
        self._on_exit = None
        if on_exit is not None:
            await on_exit(code)
