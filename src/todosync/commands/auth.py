"""Account commands: login, signup, logout, status."""

from typing import Annotated

import typer
from rich.prompt import Prompt

from todosync.models import SessionMode
from todosync.services.container import App
from todosync.services.sync_service import SyncResult
from todosync.utils.ui.console import get_console
from todosync.utils.ui.formatters import (
    format_error,
    format_info,
    format_output,
    format_success,
    format_warning,
)

from .decorators import command_wrapper
from .session import open_session

app = typer.Typer(help="Account commands")
console = get_console()


def _credentials(email: str | None, password: str | None) -> tuple[str, str]:
    if not email:
        email = Prompt.ask("Email")
    if not password:
        password = Prompt.ask("Password", password=True)
    if not email or not password:
        format_error("Email and password are required")
        raise typer.Exit(1)
    return email, password


def _report_sync(result: SyncResult | None) -> None:
    if result is None:
        return
    if not result.success:
        format_warning(f"Local tasks were kept on this device: {result.error}")
        return
    if result.tasks_uploaded:
        format_info(f"Moved {result.tasks_uploaded} local task(s) to your account")
    if result.tasks_duplicates:
        format_info(f"Skipped {result.tasks_duplicates} duplicate task(s)")


@app.command("login")
@command_wrapper
async def login(
    email: Annotated[str | None, typer.Option("--email", help="Email address")] = None,
    password: Annotated[str | None, typer.Option("--password", help="Password")] = None,
) -> None:
    """Sign in. Local tasks are moved to your account."""
    email, password = _credentials(email, password)
    async with open_session(wait=False) as session:
        identity = await session.auth_service.sign_in(email, password)
        _report_sync(session.mode_controller.last_sync_result)
    format_success(f"Logged in as {identity.email or identity.uid}")


@app.command("signup")
@command_wrapper
async def signup(
    email: Annotated[str | None, typer.Option("--email", help="Email address")] = None,
    password: Annotated[str | None, typer.Option("--password", help="Password")] = None,
    name: Annotated[str | None, typer.Option("--name", help="Full name")] = None,
) -> None:
    """Create an account and sign in."""
    email, password = _credentials(email, password)
    async with open_session(wait=False) as session:
        identity = await session.auth_service.sign_up(email, password, name)
        _report_sync(session.mode_controller.last_sync_result)
    format_success(f"Account created for {identity.email or identity.uid}")


@app.command("logout")
@command_wrapper
async def logout() -> None:
    """Sign out. Tasks stay in your account; this device starts empty."""
    async with open_session(wait=False) as session:
        if session.mode_controller.current_mode is SessionMode.LOCAL:
            format_info("Not logged in")
            return
        await session.auth_service.sign_out()
    format_success("Logged out")


async def _status(session: App) -> dict:
    controller = session.mode_controller
    status: dict = {
        "mode": controller.current_mode.value,
        "tasks": len(session.task_service.list_tasks()),
    }
    identity = controller.identity
    if identity is not None:
        status["user"] = identity.email or identity.uid
        last_sync = await session.sync_service.sync_state.get_last_sync(identity.uid)
        status["last_sync"] = last_sync.isoformat() if last_sync else None
    if session.task_service.feed_error is not None:
        status["feed_error"] = str(session.task_service.feed_error)
    return status


@app.command("status")
@command_wrapper
async def status(
    output: Annotated[str, typer.Option("--output", "-o", help="Output format")] = "pretty",
) -> None:
    """Show the session mode and account."""
    async with open_session() as session:
        data = await _status(session)

    if output in ("json", "yaml"):
        format_output(data, output)
        return
    console.print(f"[bold]Mode:[/bold] {data['mode']}")
    if "user" in data:
        console.print(f"[bold]User:[/bold] {data['user']}")
        console.print(f"[bold]Last sync:[/bold] {data['last_sync'] or 'never'}")
    console.print(f"[bold]Tasks:[/bold] {data['tasks']}")
