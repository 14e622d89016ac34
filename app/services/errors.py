"""Domain error taxonomy shared by the data managers, services and routers."""

from typing import Optional


class MeetlineError(Exception):
    """Base class for expected failures; carries the HTTP status it maps to."""

    status_code = 500

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class ValidationError(MeetlineError):
    """A required field is missing or malformed."""

    status_code = 400


class NotFoundError(MeetlineError):
    """A referenced meeting, transcript or user does not exist."""

    status_code = 404


class SummarizationError(MeetlineError):
    """The summarization gateway failed, timed out or returned no content."""

    status_code = 400


class StoreError(MeetlineError):
    """A database operation failed; wraps the driver's message."""

    status_code = 500
