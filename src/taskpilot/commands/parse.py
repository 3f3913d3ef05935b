"""taskpilot parse — recover messages from a captured terminal transcript."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from taskpilot.helpers import strip_ansi
from taskpilot.protocol.stream_parser import StreamParser

#: Bytes fed to the parser at a time, mimicking PTY reads.
_CHUNK_SIZE = 4096


@click.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Print each message as JSON.")
def parse(file: Path, as_json: bool) -> None:
    """Print the messages recoverable from a captured agent CLI transcript."""
    try:
        text = file.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise click.ClickException(f"Cannot read {file}: {exc}") from exc

    messages: list[dict[str, Any]] = []
    warnings: list[str] = []
    parser = StreamParser(messages.append, warnings.append)

    cleaned = strip_ansi(text)
    for start in range(0, len(cleaned), _CHUNK_SIZE):
        parser.feed(cleaned[start : start + _CHUNK_SIZE])
    parser.flush()

    for message in messages:
        if as_json:
            click.echo(json.dumps(message))
        else:
            click.echo(_describe(message))

    for warning in warnings:
        click.echo(click.style(f"  ⚠ {warning}", fg="yellow"), err=True)

    click.echo(f"{len(messages)} messages, {len(warnings)} warnings", err=True)


def _describe(message: dict[str, Any]) -> str:
    msg_type = str(message.get("type", "?"))
    part = message.get("part")
    if not isinstance(part, dict):
        return msg_type
    if msg_type in ("tool_call", "tool_use") and part.get("tool"):
        return f"{msg_type} {part['tool']}"
    if msg_type == "step_finish" and part.get("reason"):
        return f"{msg_type} {part['reason']}"
    return msg_type
