"""Tests for taskpilot config models and parser."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import pytest
import yaml
from pydantic import ValidationError

from taskpilot.config.models import TaskpilotConfig
from taskpilot.config.parser import ConfigError, load_config
from taskpilot.supervisor.command import TASK_ID_ENV, ConfiguredCommandBuilder
from taskpilot.supervisor.task import TaskConfig
from taskpilot.tools import ToolNames

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict[str, Any]) -> Path:
    """Write *data* as YAML and return the file path."""
    path.write_text(yaml.dump(data), encoding="utf-8")
    return path


# ===================================================================
# Model validation tests
# ===================================================================


class TestDefaults:
    def test_empty_config_is_valid(self) -> None:
        cfg = TaskpilotConfig.model_validate({})
        assert cfg.cli.command == "opencode"
        assert cfg.cli.output_format == "json"
        assert cfg.completion.max_continuation_attempts == 20
        assert cfg.terminal.cols == 200
        assert cfg.terminal.rows == 30
        assert cfg.working_directory is None

    def test_tool_names(self) -> None:
        cfg = TaskpilotConfig.model_validate(
            {"completion": {"complete_task_tool": "finish", "todo_tool": "todos"}}
        )
        assert cfg.completion.tool_names() == ToolNames(
            complete_task="finish", todo_write="todos", start_task="start_task"
        )


class TestValidation:
    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TaskpilotConfig.model_validate({"agents": {}})

    def test_negative_budget_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TaskpilotConfig.model_validate({"completion": {"max_continuation_attempts": -1}})

    def test_zero_terminal_size_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TaskpilotConfig.model_validate({"terminal": {"cols": 0}})

    def test_blank_command_rejected(self) -> None:
        with pytest.raises(ValidationError, match="must not be empty"):
            TaskpilotConfig.model_validate({"cli": {"command": "  "}})

    def test_unsupported_version(self) -> None:
        with pytest.raises(ValidationError, match="Unsupported config version"):
            TaskpilotConfig.model_validate({"version": "2"})


# ===================================================================
# Parser tests
# ===================================================================


class TestLoadConfig:
    def test_load_explicit_path(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path / "custom.yaml", {"cli": {"command": "agent"}})
        assert load_config(path).cli.command == "agent"

    def test_load_from_cwd(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_yaml(tmp_path / "taskpilot.yaml", {"version": "1"})
        monkeypatch.chdir(tmp_path)
        assert load_config().version == "1"

    def test_missing_explicit_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Config file not found"):
            load_config(tmp_path / "nope.yaml")

    def test_missing_default_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ConfigError, match="taskpilot init"):
            load_config()

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "taskpilot.yaml"
        path.write_text("cli: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_non_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "taskpilot.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Expected a YAML mapping"):
            load_config(path)

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "taskpilot.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path).cli.command == "opencode"

    def test_validation_error_is_readable(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path / "taskpilot.yaml", {"terminal": {"cols": "wide"}})
        with pytest.raises(ConfigError, match="terminal → cols"):
            load_config(path)

    def test_relative_working_directory(self, tmp_path: Path) -> None:
        (tmp_path / "repo").mkdir()
        path = _write_yaml(tmp_path / "taskpilot.yaml", {"working_directory": "repo"})
        assert load_config(path).working_directory == str((tmp_path / "repo").resolve())

    def test_missing_working_directory(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path / "taskpilot.yaml", {"working_directory": "missing"})
        with pytest.raises(ConfigError, match="Working directory not found"):
            load_config(path)

    def test_dotenv_loaded(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TASKPILOT_TEST_SECRET", raising=False)
        (tmp_path / ".env").write_text("TASKPILOT_TEST_SECRET=s3cret\n", encoding="utf-8")
        path = _write_yaml(tmp_path / "taskpilot.yaml", {"version": "1"})
        load_config(path)
        assert os.environ["TASKPILOT_TEST_SECRET"] == "s3cret"
        monkeypatch.delenv("TASKPILOT_TEST_SECRET")


# ===================================================================
# Command builder
# ===================================================================


class TestConfiguredCommandBuilder:
    def test_cli_command(self) -> None:
        cfg = TaskpilotConfig.model_validate(
            {"cli": {"command": "opencode", "base_args": ["--print-logs"]}}
        )
        cli = ConfiguredCommandBuilder(cfg).get_cli_command()
        assert cli.command == "opencode"
        assert cli.args == ["--print-logs"]

    async def test_minimal_args(self) -> None:
        builder = ConfiguredCommandBuilder(TaskpilotConfig())
        args = await builder.build_cli_args(TaskConfig(prompt="do it"))
        assert args == ["run", "do it", "--format", "json"]

    async def test_full_args(self) -> None:
        cfg = TaskpilotConfig.model_validate({"cli": {"agent": "build", "model": "m1"}})
        builder = ConfiguredCommandBuilder(cfg)
        args = await builder.build_cli_args(
            TaskConfig(prompt="p", session_id="ses_1", model_id="m2")
        )
        assert args == [
            "run", "p", "--format", "json",
            "--model", "m2",
            "--session", "ses_1",
            "--agent", "build",
        ]

    async def test_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SECRET_KEY", "x")
        monkeypatch.setenv("KEEP_ME", "y")
        cfg = TaskpilotConfig.model_validate(
            {"strip_env": ["SECRET_KEY"], "environment": {"EXTRA": "1"}}
        )
        env = await ConfiguredCommandBuilder(cfg).build_environment("t1")
        assert "SECRET_KEY" not in env
        assert env["KEEP_ME"] == "y"
        assert env["EXTRA"] == "1"
        assert env[TASK_ID_ENV] == "t1"
