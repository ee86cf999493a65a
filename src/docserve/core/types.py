"""Core type definitions."""

from typing import NewType

# URL path as requested by the client (e.g., "/", "/notes/todo.md")
# Distinct from filesystem Path to catch type mismatches
URLPath = NewType("URLPath", str)
