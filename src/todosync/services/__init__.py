"""Service layer for todosync."""
