"""Shared text helpers for terminal output handling."""

from __future__ import annotations

import json
import re
from typing import Any

#: CSI sequences (colours, cursor movement, private modes like ``?25l``).
_CSI_RE = re.compile(r"\x1B\[[0-9;?]*[a-zA-Z]")

#: OSC sequences terminated by BEL (window titles, hyperlinks).
_OSC_BEL_RE = re.compile(r"\x1B\][^\x07]*\x07")

#: OSC sequences terminated by ST (``ESC \``).
_OSC_ST_RE = re.compile(r"\x1B\][^\x1B]*\x1B\\")

#: Default length of subprocess output shown in logs.
LOG_PREVIEW_LEN = 500


def strip_ansi(text: str) -> str:
    """Remove terminal control sequences from *text*."""
    text = _CSI_RE.sub("", text)
    text = _OSC_BEL_RE.sub("", text)
    return _OSC_ST_RE.sub("", text)


def truncate(text: str, limit: int = LOG_PREVIEW_LEN) -> str:
    """Shorten *text* for log output."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... ({len(text) - limit} more chars)"


def format_output_preview(text: str, max_lines: int = 5) -> str:
    """Extract and format the last N non-empty lines of subprocess output."""
    lines = [line for line in text.split("\n") if line.strip()]
    last = lines[-max_lines:] if len(lines) > max_lines else lines
    return "\n  ".join(last)


def render_error(error: Any) -> str:
    """Human-readable text for an error value reported by the agent CLI."""
    if error is None:
        return "Unknown error"
    if isinstance(error, str):
        return error
    if isinstance(error, dict):
        for key in ("message", "name"):
            value = error.get(key)
            if isinstance(value, str) and value:
                return value
            data = error.get("data")
            if isinstance(data, dict) and isinstance(data.get(key), str):
                return data[key]
    try:
        return json.dumps(error)
    except (TypeError, ValueError):
        return str(error)
