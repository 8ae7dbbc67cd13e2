# src/tasksmith/core/errors.py

"""
Error taxonomy.

Every failure the core can produce is one of these. None of them is fatal:
front ends turn them into notices and keep the previous view/form state.
"""

from __future__ import annotations


class TasksmithError(Exception):
    """Base class for all tasksmith errors."""


class StoreReadError(TasksmithError):
    """A list/query call against the record store failed."""


class RefreshError(StoreReadError):
    """A write went through, but re-reading the task list afterwards failed."""


class StoreWriteError(TasksmithError):
    """
    A put/delete failed.

    For multi-record operations this is raised once per operation, even when
    some of the constituent writes already succeeded.
    """

    def __init__(self, message: str, *, failed: int = 1, attempted: int = 1) -> None:
        super().__init__(message)
        self.failed = failed
        self.attempted = attempted


class GenerationError(TasksmithError):
    """The generation collaborator failed or returned unusable data."""


class ValidationError(TasksmithError):
    """Required fields are missing or invalid. Never reaches the store."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field
