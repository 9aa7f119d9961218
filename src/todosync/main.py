"""Main entry point for todosync."""

import typer

from todosync import __version__
from todosync.commands import auth, config, tasks
from todosync.utils.ui.console import get_console

app = typer.Typer(
    name="todosync",
    help="Tasks that work offline and follow you once you sign in",
    no_args_is_help=True,
)

console = get_console()

# Task and account commands live at the top level
app.registered_commands.extend(tasks.app.registered_commands)
app.registered_commands.extend(auth.app.registered_commands)
app.add_typer(config.app, name="config", help="Configuration management")


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"[bold]todosync[/bold] version [cyan]{__version__}[/cyan]")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
