"""Shared exception types for brigit."""

from __future__ import annotations


class BrigitError(RuntimeError):
    """Base error for brigit operations."""


class InvalidTargetError(BrigitError):
    """Raised when a repository target cannot be parsed or constructed."""

    def __init__(self, value: str) -> None:
        """Initialise the error with the offending value."""
        super().__init__(
            f"Invalid repository target {value!r}; expected organization:repository."
        )
