"""
Parse operation schemas.

Items produced by the streaming session parser, in the order they are
emitted: one MetaItem (or ErrorItem), then EventItem/ErrorItem per line,
then exactly one DoneItem.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Annotated, Literal

import pydantic

from session_timeline.schemas.base import StrictModel
from session_timeline.schemas.session import ResponseItem, SessionMeta

ParseFailureReason = Literal['invalid_json', 'invalid_schema']


class ParserError(StrictModel):
    """A line that could not be turned into metadata or an event."""

    line: int  # 1-based physical line number
    reason: ParseFailureReason
    message: str
    raw: str  # Original line text ('' for read failures)


class ParserStats(StrictModel):
    """Terminal counters for one run. Produced exactly once."""

    totalLines: int
    parsedEvents: int
    failedLines: int
    durationMs: float


class MetaItem(StrictModel):
    """Session metadata accepted from the first content line."""

    kind: Literal['meta']
    line: int
    meta: SessionMeta
    version: int | float | str  # Schema version used to route later lines


class EventItem(StrictModel):
    """One validated timeline event."""

    kind: Literal['event']
    line: int
    event: ResponseItem


class ErrorItem(StrictModel):
    """One rejected line."""

    kind: Literal['error']
    error: ParserError


class DoneItem(StrictModel):
    """Terminal item carrying run statistics."""

    kind: Literal['done']
    stats: ParserStats


StreamItem = Annotated[
    MetaItem | EventItem | ErrorItem | DoneItem,
    pydantic.Field(discriminator='kind'),
]


class ParsedSession(StrictModel):
    """Everything one run produced, accumulated in stream order."""

    meta: SessionMeta | None
    events: Sequence[ResponseItem]
    errors: Sequence[ParserError]
    stats: ParserStats
