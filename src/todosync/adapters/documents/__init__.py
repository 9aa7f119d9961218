"""Document store adapters."""

from .memory import InMemoryDocumentStore
from .rest import RestDocumentStore

__all__ = ["InMemoryDocumentStore", "RestDocumentStore"]
