"""todosync - dual-mode task storage with sign-in migration."""

__version__ = "0.3.0"
