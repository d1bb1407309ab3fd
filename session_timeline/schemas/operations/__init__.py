"""
Operation schemas for service results.

This package contains Pydantic models for results returned by services.
"""

from __future__ import annotations

from session_timeline.schemas.operations.changes import FileChangeIndex
from session_timeline.schemas.operations.parse import (
    DoneItem,
    ErrorItem,
    EventItem,
    MetaItem,
    ParsedSession,
    ParseFailureReason,
    ParserError,
    ParserStats,
    StreamItem,
)
from session_timeline.schemas.operations.patch import (
    DiffAnalysis,
    DiffSides,
    ParsedPatchOp,
    PatchOpType,
    TextStats,
)

__all__ = [
    # Changes
    'FileChangeIndex',
    # Parse
    'ParseFailureReason',
    'ParserError',
    'ParserStats',
    'MetaItem',
    'EventItem',
    'ErrorItem',
    'DoneItem',
    'StreamItem',
    'ParsedSession',
    # Patch
    'PatchOpType',
    'ParsedPatchOp',
    'DiffSides',
    'TextStats',
    'DiffAnalysis',
]
