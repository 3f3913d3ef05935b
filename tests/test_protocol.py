"""Tests for message models, events, tool classification and text helpers."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from taskpilot.events import CompleteEvent, DebugEvent, EventChannel, ProgressEvent
from taskpilot.helpers import format_output_preview, render_error, strip_ansi, truncate
from taskpilot.protocol.messages import (
    ErrorMessage,
    StepFinishMessage,
    TodoItem,
    ToolUseMessage,
    parse_message,
)
from taskpilot.supervisor.run import SessionTracker, TaskRun
from taskpilot.tools import ToolNames, matches_tool


class TestParseMessage:
    def test_tool_use(self) -> None:
        message = parse_message(
            {
                "type": "tool_use",
                "part": {
                    "sessionID": "ses_1",
                    "tool": "bash",
                    "state": {"status": "completed", "input": {"cmd": "ls"}},
                    "extra": 1,
                },
            }
        )
        assert isinstance(message, ToolUseMessage)
        assert message.part.session_id == "ses_1"
        assert message.part.state is not None
        assert message.part.state.input == {"cmd": "ls"}

    def test_step_finish_without_part(self) -> None:
        message = parse_message({"type": "step_finish"})
        assert isinstance(message, StepFinishMessage)
        assert message.part.reason is None

    def test_step_finish_tolerates_odd_telemetry(self) -> None:
        message = parse_message(
            {"type": "step_finish", "part": {"reason": "stop", "tokens": 12, "cost": True}}
        )
        assert isinstance(message, StepFinishMessage)
        assert message.part.reason == "stop"
        assert message.part.tokens is None
        assert message.part.cost is None

    def test_step_finish_keeps_telemetry(self) -> None:
        message = parse_message(
            {"type": "step_finish", "part": {"tokens": {"input": 3}, "cost": 1}}
        )
        assert isinstance(message, StepFinishMessage)
        assert message.part.tokens == {"input": 3}
        assert message.part.cost == 1.0

    def test_error_object(self) -> None:
        message = parse_message({"type": "error", "error": {"message": "boom"}})
        assert isinstance(message, ErrorMessage)

    def test_unknown_type(self) -> None:
        assert parse_message({"type": "heartbeat"}) is None
        assert parse_message({}) is None

    def test_malformed_known_type(self) -> None:
        with pytest.raises(ValidationError):
            parse_message({"type": "text", "part": "not an object"})


class TestTodoItem:
    @pytest.mark.parametrize(
        ("status", "is_open"),
        [("pending", True), ("in_progress", True), ("completed", False), ("cancelled", False)],
    )
    def test_is_open(self, status: str, is_open: bool) -> None:
        assert TodoItem(id="1", content="x", status=status).is_open is is_open

    def test_defaults(self) -> None:
        item = TodoItem(id="1", content="x")
        assert item.status == "pending"
        assert item.priority == "medium"


class TestEventChannel:
    def test_dispatch_by_class(self) -> None:
        channel = EventChannel()
        completes: list[CompleteEvent] = []
        channel.on(CompleteEvent, completes.append)
        channel.emit(DebugEvent(type="info", message="x"))
        channel.emit(CompleteEvent(status="success"))
        assert [e.status for e in completes] == ["success"]

    def test_off_and_clear(self) -> None:
        channel = EventChannel()
        seen: list[ProgressEvent] = []
        channel.on(ProgressEvent, seen.append)
        channel.off(ProgressEvent, seen.append)
        channel.emit(ProgressEvent(stage="loading"))
        assert seen == []

        channel.on(ProgressEvent, seen.append)
        assert channel.listener_count(ProgressEvent) == 1
        channel.clear()
        assert channel.listener_count() == 0

    def test_events_reject_unknown_fields(self) -> None:
        with pytest.raises(ValidationError):
            CompleteEvent(status="success", extra="nope")

    def test_complete_status_is_checked(self) -> None:
        with pytest.raises(ValidationError):
            CompleteEvent(status="done")


class TestToolNames:
    def test_prefixed_names_match(self) -> None:
        assert matches_tool("complete_task", "complete_task")
        assert matches_tool("complete-task_complete_task", "complete_task")
        assert not matches_tool("complete_tasks", "complete_task")

    @pytest.mark.parametrize(
        "name",
        ["todowrite", "complete_task", "start_task", "skill", "AskUserQuestion",
         "report_thought", "mcp_prune", "context_info"],
    )
    def test_non_task_tools(self, name: str) -> None:
        assert ToolNames().is_non_task(name)

    @pytest.mark.parametrize("name", ["bash", "edit", "read", "webfetch"])
    def test_task_tools(self, name: str) -> None:
        assert not ToolNames().is_non_task(name)

    def test_custom_names(self) -> None:
        names = ToolNames(complete_task="finish")
        assert names.is_complete_task("srv_finish")
        assert not names.is_complete_task("complete_task")


class TestSessionTracking:
    def test_first_id_wins(self) -> None:
        tracker = SessionTracker()
        assert tracker.capture("ses_1")
        assert not tracker.capture("ses_2")
        assert tracker.session_id == "ses_1"

    def test_empty_id_ignored(self) -> None:
        tracker = SessionTracker()
        assert not tracker.capture(None)
        assert not tracker.capture("")
        assert tracker.session_id is None

    def test_latch_once(self) -> None:
        run = TaskRun(task_id="t1")
        assert run.latch()
        assert not run.latch()


class TestHelpers:
    def test_strip_ansi(self) -> None:
        text = "\x1b[1;32mgreen\x1b[0m \x1b[?25lcursor \x1b]0;title\x07 \x1b]8;;http://x\x1b\\link"
        assert strip_ansi(text) == "green cursor  link"

    def test_strip_ansi_keeps_json(self) -> None:
        payload = '{"text": "a\\u001b[0m"}'
        assert strip_ansi(payload) == payload

    def test_truncate(self) -> None:
        assert truncate("short") == "short"
        assert truncate("x" * 20, limit=5) == "xxxxx... (15 more chars)"

    def test_output_preview(self) -> None:
        text = "\n".join(f"line {i}" for i in range(10))
        assert format_output_preview(text, max_lines=2) == "line 8\n  line 9"

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            ("plain", "plain"),
            ({"message": "boom"}, "boom"),
            ({"name": "APIError"}, "APIError"),
            ({"data": {"message": "nested"}}, "nested"),
            ({"code": 7}, '{"code": 7}'),
            (None, "Unknown error"),
        ],
    )
    def test_render_error(self, error: object, expected: str) -> None:
        assert render_error(error) == expected
