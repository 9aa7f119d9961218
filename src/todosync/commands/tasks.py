"""Task commands: add, list, done, edit, delete, stats."""

from datetime import datetime
from enum import Enum
from typing import Annotated

import typer

from todosync.errors import TaskValidationError
from todosync.models import Task
from todosync.services.task_service import TaskService
from todosync.utils.ids import resolve_task_id, shorten_id
from todosync.utils.ui.console import get_console
from todosync.utils.ui.formatters import (
    format_info,
    format_output,
    format_statistics,
    format_success,
    format_tasks,
    task_to_dict,
)

from .decorators import command_wrapper
from .session import open_session

app = typer.Typer(help="Task commands")
console = get_console()

DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M"]


class StatusChoice(str, Enum):
    all = "all"
    active = "active"
    completed = "completed"
    overdue = "overdue"


class SortChoice(str, Enum):
    created_at = "created_at"
    due_date = "due_date"
    priority = "priority"
    alphabetical = "alphabetical"


class PriorityChoice(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


def _find_task(service: TaskService, reference: str) -> Task:
    tasks = service.list_tasks()
    task_id = resolve_task_id([task.id for task in tasks], reference)
    return next(task for task in tasks if task.id == task_id)


@app.command("add")
@command_wrapper
async def add(
    title: Annotated[str, typer.Argument(help="Task title")],
    description: Annotated[
        str | None, typer.Option("--description", "-d", help="Task description")
    ] = None,
    priority: Annotated[
        PriorityChoice, typer.Option("--priority", "-p", help="Priority")
    ] = PriorityChoice.medium,
    category: Annotated[str, typer.Option("--category", "-c", help="Category")] = "Other",
    due: Annotated[
        datetime | None, typer.Option("--due", help="Due date", formats=DATE_FORMATS)
    ] = None,
    output: Annotated[str, typer.Option("--output", "-o", help="Output format")] = "pretty",
) -> None:
    """Add a task to the active store."""
    async with open_session(wait=False) as session:
        task = await session.task_service.add_task(
            title,
            description=description,
            priority=priority.value,
            category=category,
            due_date=due,
        )

    if output in ("json", "yaml"):
        format_output(task_to_dict(task), output)
        return
    format_success(f"Task added: {task.title} ({shorten_id(task.id)})")


@app.command("list")
@command_wrapper
async def list_tasks(
    status: Annotated[
        StatusChoice, typer.Option("--status", "-s", help="Status filter")
    ] = StatusChoice.all,
    search: Annotated[
        str | None, typer.Option("--search", "-q", help="Search title and description")
    ] = None,
    sort: Annotated[SortChoice, typer.Option("--sort", help="Sort order")] = SortChoice.created_at,
    output: Annotated[
        str, typer.Option("--output", "-o", help="Output format (pretty/json/yaml)")
    ] = "pretty",
    json_opt: Annotated[
        bool, typer.Option("--json", help="Output as JSON (alias for --output json)")
    ] = False,
) -> None:
    """List tasks of the active session."""
    if json_opt:
        output = "json"

    async with open_session() as session:
        tasks = session.task_service.query(status=status.value, search=search, sort=sort.value)

    format_tasks(tasks, output)


@app.command("done")
@command_wrapper
async def done(
    task_id: Annotated[str, typer.Argument(help="Task ID or ID prefix")],
) -> None:
    """Toggle a task between completed and active."""
    async with open_session() as session:
        task = _find_task(session.task_service, task_id)
        await session.task_service.toggle_complete(task.id)

    state = "active" if task.completed else "completed"
    format_success(f"Marked '{task.title}' as {state}")


@app.command("edit")
@command_wrapper
async def edit(
    task_id: Annotated[str, typer.Argument(help="Task ID or ID prefix")],
    title: Annotated[str | None, typer.Option("--title", "-t", help="New title")] = None,
    description: Annotated[
        str | None, typer.Option("--description", "-d", help="New description")
    ] = None,
    clear_description: Annotated[
        bool, typer.Option("--clear-description", help="Remove the description")
    ] = False,
    priority: Annotated[
        PriorityChoice | None, typer.Option("--priority", "-p", help="New priority")
    ] = None,
    category: Annotated[str | None, typer.Option("--category", "-c", help="New category")] = None,
    due: Annotated[
        datetime | None, typer.Option("--due", help="New due date", formats=DATE_FORMATS)
    ] = None,
    clear_due: Annotated[bool, typer.Option("--clear-due", help="Remove the due date")] = False,
) -> None:
    """Edit fields of a task. Only the given options are changed."""
    changes: dict = {}
    if title is not None:
        changes["title"] = title
    if clear_description:
        changes["description"] = None
    elif description is not None:
        changes["description"] = description
    if priority is not None:
        changes["priority"] = priority.value
    if category is not None:
        changes["category"] = category
    if clear_due:
        changes["due_date"] = None
    elif due is not None:
        changes["due_date"] = due
    if not changes:
        raise TaskValidationError("Nothing to change; pass at least one option")

    async with open_session() as session:
        task = _find_task(session.task_service, task_id)
        await session.task_service.update_task(task.id, **changes)

    format_success(f"Task updated: {shorten_id(task.id)}")


@app.command("delete")
@command_wrapper
async def delete(
    task_id: Annotated[str, typer.Argument(help="Task ID or ID prefix")],
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation")] = False,
) -> None:
    """Delete a task."""
    async with open_session() as session:
        task = _find_task(session.task_service, task_id)
        if not force and not typer.confirm(f"Delete task '{task.title}'?"):
            format_info("Cancelled")
            return
        await session.task_service.delete_task(task.id)

    format_success(f"Task deleted: {task.title}")


@app.command("stats")
@command_wrapper
async def stats(
    output: Annotated[str, typer.Option("--output", "-o", help="Output format")] = "pretty",
) -> None:
    """Show task statistics."""
    async with open_session() as session:
        statistics = session.task_service.statistics()

    format_statistics(statistics, output)
