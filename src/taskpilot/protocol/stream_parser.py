"""Incremental decoder for JSON objects embedded in a noisy terminal stream."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

#: Buffer ceiling; anything larger is treated as corrupted output (10 MiB).
MAX_BUFFER_SIZE = 10 * 1024 * 1024

#: Characters of skipped or rejected content shown in debug logs.
_PREVIEW_LEN = 100

MessageCallback = Callable[[dict[str, Any]], None]
WarningCallback = Callable[[str], None]


class StreamParser:
    """Recovers whole JSON objects from a fragmented, partially non-JSON stream.

    The PTY may deliver one object split across many chunks (even
    mid-string), several objects glued together in one chunk, and shell
    banners or stray escape bytes between them.  Objects are delimited by
    brace counting that ignores braces inside string literals, so no
    newline framing is required.

    ``on_message`` is called once per recovered object, in arrival order.
    Spans that look complete but fail to decode are dropped and reported
    through ``on_warning``; the parser itself never raises.
    """

    def __init__(
        self,
        on_message: MessageCallback,
        on_warning: WarningCallback | None = None,
    ) -> None:
        self._on_message = on_message
        self._on_warning = on_warning
        self._buffer = ""
        self._reset_scan()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def feed(self, chunk: str) -> None:
        """Append *chunk* and emit every object completed by it."""
        if not chunk:
            return
        self._buffer += chunk
        self._parse_buffer()

        if len(self._buffer) > MAX_BUFFER_SIZE:
            self._warn("Stream buffer size exceeded maximum limit")
            self.reset()

    def flush(self) -> None:
        """Try the trailing buffer as one last object, then discard it."""
        remaining = self._buffer
        self.reset()
        if remaining.strip():
            self._parse_span(remaining)

    def reset(self) -> None:
        """Drop any buffered content."""
        self._buffer = ""
        self._reset_scan()

    @property
    def buffered(self) -> int:
        """Number of characters waiting for the rest of an object."""
        return len(self._buffer)

    # ------------------------------------------------------------------ #
    # Scanning
    # ------------------------------------------------------------------ #

    def _reset_scan(self) -> None:
        # Scan state survives across feeds so a large object arriving in
        # many chunks is only walked once.
        self._scan_pos = 0
        self._depth = 0
        self._in_string = False
        self._escape = False

    def _parse_buffer(self) -> None:
        while True:
            if self._scan_pos == 0:
                start = self._buffer.find("{")
                if start == -1:
                    self._skip(self._buffer)
                    self._buffer = ""
                    return
                if start > 0:
                    self._skip(self._buffer[:start])
                    self._buffer = self._buffer[start:]

            end = self._find_object_end()
            if end == -1:
                return

            span = self._buffer[: end + 1]
            self._buffer = self._buffer[end + 1 :]
            self._reset_scan()
            self._parse_span(span)

    def _find_object_end(self) -> int:
        """Return the index of the closing brace, or -1 if incomplete."""
        buf = self._buffer
        depth = self._depth
        in_string = self._in_string
        escape = self._escape

        for i in range(self._scan_pos, len(buf)):
            char = buf[i]
            if escape:
                escape = False
                continue
            if in_string:
                if char == "\\":
                    escape = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return i

        self._scan_pos = len(buf)
        self._depth = depth
        self._in_string = in_string
        self._escape = escape
        return -1

    # ------------------------------------------------------------------ #
    # Decoding
    # ------------------------------------------------------------------ #

    def _parse_span(self, span: str) -> None:
        # Terminals hard-wrap long lines by injecting CR/LF, which lands
        # inside string values. Raw CR/LF is never valid inside a JSON
        # string, so removing it cannot change a well-formed object.
        sanitized = span.strip().replace("\r", "").replace("\n", "")
        if not sanitized:
            return
        try:
            message = json.loads(sanitized)
        except json.JSONDecodeError as exc:
            self._warn(f"Failed to parse JSON: {exc.msg} in {sanitized[:_PREVIEW_LEN]!r}")
            return
        if not isinstance(message, dict):
            self._warn(f"Ignoring non-object JSON value: {sanitized[:_PREVIEW_LEN]!r}")
            return

        logger.debug("Parsed message type: %s", message.get("type"))
        self._on_message(message)

    def _skip(self, content: str) -> None:
        skipped = content.strip()
        if skipped:
            logger.debug("Skipping non-JSON content: %s", skipped[:_PREVIEW_LEN])

    def _warn(self, message: str) -> None:
        logger.debug("%s", message)
        if self._on_warning is not None:
            self._on_warning(message)
