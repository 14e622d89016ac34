"""Service layer helpers for Meetline."""

from .errors import (
    MeetlineError,
    NotFoundError,
    StoreError,
    SummarizationError,
    ValidationError,
)  # noqa: F401

__all__ = [
    "MeetlineError",
    "NotFoundError",
    "StoreError",
    "SummarizationError",
    "ValidationError",
]
