"""HTTP access to the todosync backend."""

from .client import APIClient

__all__ = ["APIClient"]
