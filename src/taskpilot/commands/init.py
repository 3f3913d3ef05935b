"""taskpilot init — scaffold a taskpilot configuration."""

from __future__ import annotations

from pathlib import Path

import click

CONFIG_FILENAME = "taskpilot.yaml"
ENV_EXAMPLE_FILENAME = ".env.example"

TEMPLATE_YAML = """\
# taskpilot configuration
version: "1"

# How the agent CLI is launched:
#   <command> <base_args> run <prompt> --format <output_format> [--model ...]
cli:
  command: opencode
  base_args: []
  # agent: build
  # model: anthropic/claude-sonnet-4-5
  output_format: json

# Directory the agent works in (default: system temp dir).
# Relative paths are resolved against this file.
# working_directory: .

# Extra environment variables for the agent CLI
environment: {}

# Inherited environment variables removed before spawning
strip_env: []

# Completion enforcement
completion:
  max_continuation_attempts: 20
  complete_task_tool: complete_task
  todo_tool: todowrite
  start_task_tool: start_task

# Pseudo-terminal size
terminal:
  cols: 200
  rows: 30
"""

TEMPLATE_ENV_EXAMPLE = """\
# Environment for the agent CLI.
# Copy this file to .env next to taskpilot.yaml and fill in what your
# agent CLI needs. taskpilot loads it before spawning the agent.

ANTHROPIC_API_KEY=
OPENAI_API_KEY=
"""


@click.command()
@click.option(
    "--force",
    is_flag=True,
    help="Overwrite existing taskpilot.yaml if it exists.",
)
def init(force: bool) -> None:
    """Scaffold a taskpilot configuration in the current directory."""
    cwd = Path.cwd()
    config_path = cwd / CONFIG_FILENAME
    env_example_path = cwd / ENV_EXAMPLE_FILENAME

    if config_path.exists() and not force:
        raise click.ClickException(
            f"{CONFIG_FILENAME} already exists. Use --force to overwrite."
        )

    try:
        config_path.write_text(TEMPLATE_YAML, encoding="utf-8")
    except OSError as exc:
        raise click.ClickException(f"Cannot write {CONFIG_FILENAME}: {exc}") from exc
    click.echo(f"  Created {CONFIG_FILENAME}")

    # .env.example is only replaced with --force
    if not env_example_path.exists() or force:
        try:
            env_example_path.write_text(TEMPLATE_ENV_EXAMPLE, encoding="utf-8")
        except OSError as exc:
            raise click.ClickException(
                f"Cannot write {ENV_EXAMPLE_FILENAME}: {exc}"
            ) from exc
        click.echo(f"  Created {ENV_EXAMPLE_FILENAME}")
    else:
        click.echo(f"  Skipped {ENV_EXAMPLE_FILENAME} (already exists)")

    click.echo()
    click.echo("Next steps:")
    click.echo(f"  1. Edit {CONFIG_FILENAME} to point at your agent CLI")
    click.echo("  2. Copy .env.example to .env and add any keys it needs")
    click.echo('  3. Run `taskpilot run "your task"`')
