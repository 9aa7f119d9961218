"""Decorators for command functions."""

import asyncio
import functools
import inspect
import time
import traceback
from collections.abc import Callable

import typer

from todosync.errors import TodoSyncError
from todosync.utils.logger import get_logger
from todosync.utils.ui.formatters import format_error


def command_wrapper(func: Callable) -> Callable:
    """Run a (possibly async) command with logging and error reporting."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = get_logger()
        cmd = func.__name__
        start = time.monotonic()
        logger.info("command started: %s", cmd)
        try:
            if inspect.iscoroutinefunction(func):
                result = asyncio.run(func(*args, **kwargs))
            else:
                result = func(*args, **kwargs)

            elapsed = time.monotonic() - start
            logger.info("command completed: %s (%.3fs)", cmd, elapsed)
            return result

        except TodoSyncError as e:
            elapsed = time.monotonic() - start
            logger.error("command failed: %s (%.3fs) - %s", cmd, elapsed, str(e))
            format_error(str(e))
            raise typer.Exit(code=1) from e

        except typer.Exit:
            raise

        except Exception as e:
            elapsed = time.monotonic() - start
            logger.error(
                "command failed: %s (%.3fs) - %s\n%s",
                cmd,
                elapsed,
                str(e),
                traceback.format_exc(),
            )
            format_error(f"An unexpected error occurred: {str(e)}")
            raise typer.Exit(code=1) from e

    return wrapper
