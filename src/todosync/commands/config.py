"""Configuration management commands."""

import typer

from todosync.services.config_service import get_config_service
from todosync.utils.ui.console import get_console
from todosync.utils.ui.formatters import format_info, format_output, format_success

from .decorators import command_wrapper

app = typer.Typer(help="Configuration management commands")
console = get_console()


@app.command("show")
@command_wrapper
def show_config(
    output: str = typer.Option("yaml", "--output", "-o", help="Output format (yaml/json)"),
) -> None:
    """Show the current configuration."""
    format_output(get_config_service().as_dict(), output)


@app.command("get")
@command_wrapper
def get_config(
    key: str = typer.Argument(..., help="Configuration key (e.g., remote.endpoint)"),
) -> None:
    """Get a configuration value."""
    console.print(get_config_service().get(key))


@app.command("set")
@command_wrapper
def set_config(
    key: str = typer.Argument(..., help="Configuration key (e.g., sync.clear_local_after_sync)"),
    value: str = typer.Argument(..., help="Configuration value"),
) -> None:
    """Set a configuration value."""
    config_service = get_config_service()
    config_service.set(key, value)
    format_success(f"Configuration '{key}' set to '{config_service.get(key)}'")


@app.command("reset")
@command_wrapper
def reset_config(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Reset configuration to defaults."""
    if not yes and not typer.confirm("Reset all configuration to defaults?"):
        format_info("Cancelled")
        return
    get_config_service().reset_config()
    format_success("Configuration reset to defaults")
