"""
Shared exceptions for session-timeline.

Exception Hierarchy:
    SessionTimelineError (base)
    ├── LineParseError (one line rejected; converted to an error item by the stream driver)
    └── SessionFileError (session file missing or unreadable at the service/CLI boundary)
"""

from __future__ import annotations

from session_timeline.schemas.operations import ParseFailureReason


class SessionTimelineError(Exception):
    """Base exception for all session-timeline errors."""


class LineParseError(SessionTimelineError):
    """Raised by the line validators when a line cannot be accepted.

    Never escapes SessionStream: the driver turns it into an ErrorItem.
    """

    def __init__(self, reason: ParseFailureReason, message: str) -> None:
        self.reason: ParseFailureReason = reason
        self.message = message
        super().__init__(f'{reason}: {message}')


class SessionFileError(SessionTimelineError):
    """Raised when a session file cannot be opened."""

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        super().__init__(f'Cannot read session file {path}: {detail}')
