"""Adapters implementing the todosync ports."""
