"""Output formatters for different formats."""

import json
from typing import Any

import yaml
from rich.table import Table

from todosync.models import Task
from todosync.utils.ids import shorten_id
from todosync.utils.task_query import TaskStatistics, is_due_soon, is_due_today, is_overdue
from todosync.utils.ui.console import get_console

console = get_console()

PRIORITY_STYLES = {"high": "bold red", "medium": "yellow", "low": "dim"}


def task_to_dict(task: Task) -> dict[str, Any]:
    return task.model_dump(mode="json", exclude_none=True)


def format_output(data: Any, output_format: str = "pretty") -> None:
    """Print plain data as JSON or YAML."""
    if output_format == "json":
        print(json.dumps(data, indent=2, default=str))
    elif output_format == "yaml":
        print(yaml.dump(data, default_flow_style=False, sort_keys=False))
    else:
        console.print(data)


def format_due(task: Task) -> str:
    if task.due_date is None:
        return ""
    label = task.due_date.strftime("%Y-%m-%d")
    if task.completed:
        return label
    if is_overdue(task.due_date):
        return f"[red]{label} (overdue)[/red]"
    if is_due_today(task.due_date):
        return f"[yellow]{label} (today)[/yellow]"
    if is_due_soon(task.due_date):
        return f"[cyan]{label}[/cyan]"
    return label


def format_tasks(tasks: list[Task], output_format: str = "pretty") -> None:
    """Display tasks as a table, JSON or YAML."""
    if output_format in ("json", "yaml"):
        format_output([task_to_dict(task) for task in tasks], output_format)
        return

    if not tasks:
        console.print("[yellow]No tasks found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("", no_wrap=True)
    table.add_column("Title")
    table.add_column("Priority", no_wrap=True)
    table.add_column("Category")
    table.add_column("Due", no_wrap=True)

    for task in tasks:
        title = f"[strike dim]{task.title}[/strike dim]" if task.completed else task.title
        style = PRIORITY_STYLES.get(task.priority, "")
        table.add_row(
            shorten_id(task.id),
            "✓" if task.completed else "○",
            title,
            f"[{style}]{task.priority}[/{style}]" if style else task.priority,
            task.category,
            format_due(task),
        )
    console.print(table)


def format_statistics(stats: TaskStatistics, output_format: str = "pretty") -> None:
    if output_format in ("json", "yaml"):
        format_output(
            {
                "total": stats.total,
                "completed": stats.completed,
                "pending": stats.pending,
                "overdue": stats.overdue,
                "completion_rate": stats.completion_rate,
                "by_category": stats.by_category,
                "by_priority": stats.by_priority,
            },
            output_format,
        )
        return

    console.print(f"[bold]Total:[/bold] {stats.total}")
    console.print(f"[bold]Completed:[/bold] {stats.completed}")
    console.print(f"[bold]Pending:[/bold] {stats.pending}")
    console.print(f"[bold]Overdue:[/bold] {stats.overdue}")
    console.print(f"[bold]Completion rate:[/bold] {stats.completion_rate}%")

    if stats.by_category:
        table = Table(title="By category", show_header=True, header_style="bold magenta")
        table.add_column("Category")
        table.add_column("Tasks", justify="right")
        for category, count in sorted(stats.by_category.items()):
            table.add_row(category, str(count))
        console.print(table)

    table = Table(title="By priority", show_header=True, header_style="bold magenta")
    table.add_column("Priority")
    table.add_column("Tasks", justify="right")
    for priority in ("high", "medium", "low"):
        table.add_row(priority, str(stats.by_priority.get(priority, 0)))
    console.print(table)


def format_error(message: str) -> None:
    """Format and display an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def format_success(message: str) -> None:
    """Format and display a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def format_warning(message: str) -> None:
    """Format and display a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def format_info(message: str) -> None:
    """Format and display an info message."""
    console.print(f"[bold blue]Info:[/bold blue] {message}")
