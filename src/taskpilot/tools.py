"""Classification of agent tool names by their role in completion tracking."""

from __future__ import annotations

from dataclasses import dataclass

COMPLETE_TASK_TOOL = "complete_task"
TODO_WRITE_TOOL = "todowrite"
START_TASK_TOOL = "start_task"

#: Context-management tools the CLI hides from users.
HIDDEN_TOOL_BASENAMES = ("discard", "extract", "context_info", "prune", "distill")

#: Tools that never show the agent doing task work, besides the reserved ones.
_NON_TASK_TOOLS = (
    *HIDDEN_TOOL_BASENAMES,
    "skill",
    "AskUserQuestion",
    "report_checkpoint",
    "report_thought",
    "request_file_permission",
)


def matches_tool(tool_name: str, base_name: str) -> bool:
    """True if *tool_name* is *base_name* or an MCP-prefixed ``*_base_name``.

    MCP servers prefix their tools with the server name, e.g.
    ``complete-task_complete_task``.
    """
    return tool_name == base_name or tool_name.endswith(f"_{base_name}")


@dataclass(frozen=True)
class ToolNames:
    """Names of the reserved tools the agent uses to report on itself."""

    complete_task: str = COMPLETE_TASK_TOOL
    todo_write: str = TODO_WRITE_TOOL
    start_task: str = START_TASK_TOOL

    def is_complete_task(self, tool_name: str) -> bool:
        return matches_tool(tool_name, self.complete_task)

    def is_todo_write(self, tool_name: str) -> bool:
        return matches_tool(tool_name, self.todo_write)

    def is_start_task(self, tool_name: str) -> bool:
        return matches_tool(tool_name, self.start_task)

    def is_non_task(self, tool_name: str) -> bool:
        """True for bookkeeping tools that should not count as task work."""
        reserved = (self.complete_task, self.todo_write, self.start_task)
        return any(matches_tool(tool_name, base) for base in (*reserved, *_NON_TASK_TOOLS))
