"""Argument validation against capability schemas and safety rules."""

from .validator import InputValidator, has_traversal, is_command_permitted, resolve_executable

__all__ = ["InputValidator", "has_traversal", "is_command_permitted", "resolve_executable"]
