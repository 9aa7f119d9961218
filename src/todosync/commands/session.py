"""Application session for a single CLI invocation."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from todosync.models import SessionMode
from todosync.services.config_service import get_config_service
from todosync.services.container import App, open_app
from todosync.utils.ui.formatters import format_warning


@asynccontextmanager
async def open_session(wait: bool = True) -> AsyncIterator[App]:
    """Start the app from the user's config and, in remote mode, wait for tasks."""
    config = get_config_service().config
    async with open_app(config) as app:
        service = app.task_service
        if wait and service.current_mode() is SessionMode.REMOTE:
            if not await service.wait_until_ready(timeout=config.remote.timeout):
                format_warning("Timed out waiting for remote tasks")
            if service.feed_error is not None:
                format_warning(str(service.feed_error))
        yield app
