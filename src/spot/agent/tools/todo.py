"""
agent.tools.todo - Session task list management.

The only tool that mutates session state. It never touches Task fields
directly; every change goes through the TaskBoard surface on the context.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from spot.application.context import ToolContext
from spot.agent.tools.base import BaseTool, ToolResult
from spot.domain.models import TaskStatus

TodoAction = Literal["list", "add", "start", "complete", "remove", "clear_completed"]


class TodoInput(BaseModel):
    """Input schema for the todo tool."""

    action: TodoAction = Field(
        description=(
            "The action to perform: list, add, start, complete, remove, clear_completed"
        ),
    )
    content: Optional[str] = Field(
        default=None, description='Task description (required for "add" action)',
    )
    id: Optional[str] = Field(
        default=None, description='Task ID (required for "start", "complete", "remove" actions)',
    )


class TodoTool(BaseTool):
    """Plan and track multi-step work."""

    name = "todo"
    description = (
        "Manage a task list to track work. Use this to plan multi-step tasks, "
        "track progress, and stay organized."
    )

    def get_schema(self) -> type[BaseModel]:
        return TodoInput

    async def execute(
        self,
        ctx: Optional[ToolContext],
        action: str = "list",
        content: Optional[str] = None,
        id: Optional[str] = None,
        **kwargs,
    ) -> ToolResult:
        if ctx is None or ctx.session is None:
            return ToolResult(output="Error: Todo tool requires session context")
        board = ctx.session

        if action == "list":
            if not board.tasks:
                return ToolResult(output="No tasks in the list.")
            lines = [task.render() for task in board.tasks]
            return ToolResult(output="Tasks:\n" + "\n".join(lines))

        if action == "add":
            if not content:
                return ToolResult(output='Error: "content" is required for add action')
            task = board.add_task(content)
            return ToolResult(output=f"Added task: {task.content} (id: {task.id})", data=task)

        if action in ("start", "complete"):
            if not id:
                return ToolResult(output=f'Error: "id" is required for {action} action')
            status = TaskStatus.IN_PROGRESS if action == "start" else TaskStatus.COMPLETED
            if board.update_task(id, status):
                label = "in progress" if action == "start" else "completed"
                return ToolResult(output=f"Task {id} marked as {label}")
            return ToolResult(output=f"Error: Task {id} not found")

        if action == "remove":
            if not id:
                return ToolResult(output='Error: "id" is required for remove action')
            if board.remove_task(id):
                return ToolResult(output=f"Task {id} removed")
            return ToolResult(output=f"Error: Task {id} not found")

        if action == "clear_completed":
            count = board.clear_completed_tasks()
            return ToolResult(output=f"Cleared {count} completed task(s)")

        return ToolResult(output=(
            f'Error: Unknown action "{action}". '
            "Use: list, add, start, complete, remove, clear_completed"
        ))
