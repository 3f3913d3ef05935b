"""Root CLI group and version flag."""

import click

from taskpilot import __version__
from taskpilot.commands.init import init
from taskpilot.commands.parse import parse
from taskpilot.commands.run import run


@click.group()
@click.version_option(version=__version__, prog_name="taskpilot")
def cli() -> None:
    """taskpilot — drive a coding-agent CLI until the task is really done."""


cli.add_command(init)
cli.add_command(run)
cli.add_command(parse)
