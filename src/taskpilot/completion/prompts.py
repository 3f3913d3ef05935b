"""Prompts sent as the next user turn when a continuation is started."""

from __future__ import annotations

from taskpilot.tools import COMPLETE_TASK_TOOL, TODO_WRITE_TOOL


def continuation_prompt(complete_task_tool: str = COMPLETE_TASK_TOOL) -> str:
    """Reminder for an agent that stopped without reporting completion."""
    return f"""\
REMINDER: You must call {complete_task_tool} when you are finished.

First ask yourself: "Have I actually finished everything the user asked for?"

- Not yet: CONTINUE WORKING on the task.
- Everything is done: call {complete_task_tool} with status "success".
- You are stuck on a real blocker: call {complete_task_tool} with status "blocked".
- Only some parts are done: call {complete_task_tool} with status "partial".

Do not call {complete_task_tool} before the request is actually complete.
If there is more to do, keep working."""


def incomplete_todos_prompt(
    incomplete_todos: str,
    complete_task_tool: str = COMPLETE_TASK_TOOL,
    todo_tool: str = TODO_WRITE_TOOL,
) -> str:
    """Rejection of a success claim made while checklist items are open."""
    return f"""\
Your {complete_task_tool} call was not accepted because these todo items are \
still open:

{incomplete_todos}

Finish any item that is not done yet. Then call {todo_tool} to mark every item \
"completed" or "cancelled", and call {complete_task_tool} with status "success"."""


def partial_continuation_prompt(
    remaining_work: str,
    original_request: str,
    completed_summary: str,
    complete_task_tool: str = COMPLETE_TASK_TOOL,
) -> str:
    """Push an agent that reported ``partial`` to finish the remaining work."""
    return f"""\
You called {complete_task_tool} with status "partial", but the task is not done.

## Original request
"{original_request}"

## What you completed
{completed_summary}

## What you said remains
{remaining_work}

## Before continuing

1. Re-read every requirement of the original request.
2. Write a continuation plan listing what is done and what remains, with
   how you will verify each remaining step.
3. Work through the plan.
4. Call {complete_task_tool} with status "success" only when ALL of the
   original requirements are met.

## Rules

- "partial" is not an acceptable final status. Do not report it again
  unless you hit a technical blocker.
- For a real blocker (login wall, CAPTCHA, rate limit, site error) report
  status "blocked".
- Do not ask the user whether you should continue. Continue.

Write your continuation plan now and resume the remaining work."""
