"""
Streaming session parser.

SessionStream turns a byte source into an ordered stream of items:

    meta | error          first content line
    (event | error)*      one per later content line
    done                  exactly once, always last

Lines are pulled one at a time and fully processed before the next pull, so
nothing is buffered beyond the line splitter's chunk and carry. Per-line
problems become error items; the only early stop is the max_errors ceiling.
Abandoning the iterator stops all work.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Iterator
from typing import assert_never

from session_timeline.exceptions import LineParseError
from session_timeline.schemas.operations import (
    DoneItem,
    ErrorItem,
    EventItem,
    MetaItem,
    ParsedSession,
    ParserError,
    ParserStats,
    StreamItem,
)
from session_timeline.schemas.session import SCHEMA_VERSION, ResponseItem, SessionMeta
from session_timeline.services.lines import iter_text_lines
from session_timeline.services.validators import (
    EventValidator,
    decode_json_line,
    is_framing_line,
    is_state_marker,
    parse_session_meta,
    pick_version,
    validator_for_version,
)

logger = logging.getLogger(__name__)


class SessionStream(Iterator[StreamItem]):
    """
    Pull-based iterator over the items of one session.

    Single-pass: iterate it once. Counters reflect the lines consumed so
    far and match the done item's stats once the stream is exhausted.

    Args:
        source: Byte chunks of NDJSON text, in order
        max_errors: Stop after this many failed lines (None = unbounded)
        encoding: Text encoding of the source
    """

    def __init__(self, source: Iterable[bytes], *, max_errors: int | None = None, encoding: str = 'utf-8') -> None:
        if max_errors is not None and max_errors < 1:
            raise ValueError(f'max_errors must be a positive integer, got {max_errors}')
        self.max_errors = max_errors
        self.total = 0
        self.ok = 0
        self.fail = 0
        self.version: int | float | str = SCHEMA_VERSION
        self._meta_seen = False
        self._validator: EventValidator = validator_for_version(SCHEMA_VERSION)
        self._items = self._run(iter_text_lines(source, encoding))

    def __iter__(self) -> SessionStream:
        return self

    def __next__(self) -> StreamItem:
        return next(self._items)

    def close(self) -> None:
        """Stop the stream early. No further items are produced."""
        self._items.close()

    # --------------------------------------------------------------------------
    # Driver
    # --------------------------------------------------------------------------

    def _ceiling_reached(self) -> bool:
        return self.max_errors is not None and self.fail >= self.max_errors

    def _run(self, lines: Iterator[str]) -> Iterator[StreamItem]:
        started = time.perf_counter()
        line_no = 0

        while True:
            try:
                line = next(lines)
            except StopIteration:
                break
            except Exception as e:
                # The source itself failed; report it once and finish normally
                logger.warning('Session source failed after line %d: %s', line_no, e)
                self.fail += 1
                yield ErrorItem(
                    kind='error',
                    error=ParserError(
                        line=line_no + 1,
                        reason='invalid_json',
                        message=f'Failed to read input: {e}',
                        raw='',
                    ),
                )
                break

            line_no += 1
            self.total += 1

            item = self._process_line(line, line_no)
            if item is None:
                continue
            yield item

            if isinstance(item, ErrorItem) and self._ceiling_reached():
                logger.debug('Error ceiling %d reached at line %d', self.max_errors, line_no)
                break

        yield DoneItem(
            kind='done',
            stats=ParserStats(
                totalLines=self.total,
                parsedEvents=self.ok,
                failedLines=self.fail,
                durationMs=max(0.0, (time.perf_counter() - started) * 1000),
            ),
        )

    def _process_line(self, line: str, line_no: int) -> StreamItem | None:
        """Turn one line into an item, or None when the line is skipped."""
        if not line.strip() or is_framing_line(line):
            return None

        try:
            value = decode_json_line(line)
        except LineParseError as e:
            self._meta_seen = True
            return self._error(line_no, line, e)

        if is_state_marker(value):
            return None

        if not self._meta_seen:
            self._meta_seen = True
            try:
                meta = parse_session_meta(value)
            except LineParseError as e:
                return self._error(line_no, line, e)
            self.version = pick_version(meta)
            self._validator = validator_for_version(self.version)
            return MetaItem(kind='meta', line=line_no, meta=meta, version=self.version)

        try:
            event = self._validator(value)
        except LineParseError as e:
            return self._error(line_no, line, e)
        self.ok += 1
        return EventItem(kind='event', line=line_no, event=event)

    def _error(self, line_no: int, line: str, error: LineParseError) -> ErrorItem:
        self.fail += 1
        return ErrorItem(
            kind='error',
            error=ParserError(line=line_no, reason=error.reason, message=error.message, raw=line),
        )


# ==============================================================================
# Collection
# ==============================================================================


def collect_items(items: Iterable[StreamItem]) -> ParsedSession:
    """
    Accumulate a stream into a ParsedSession.

    Raises:
        ValueError: If the stream ended without a done item
    """
    meta: SessionMeta | None = None
    events: list[ResponseItem] = []
    errors: list[ParserError] = []
    stats: ParserStats | None = None

    for item in items:
        match item:
            case MetaItem():
                meta = item.meta
            case EventItem():
                events.append(item.event)
            case ErrorItem():
                errors.append(item.error)
            case DoneItem():
                stats = item.stats
            case _:
                assert_never(item)

    if stats is None:
        raise ValueError('Stream ended without a done item')
    return ParsedSession(meta=meta, events=events, errors=errors, stats=stats)


def parse_session_to_arrays(
    source: Iterable[bytes], *, max_errors: int | None = None, encoding: str = 'utf-8'
) -> ParsedSession:
    """Parse a whole session and return metadata, events, errors and stats."""
    return collect_items(SessionStream(source, max_errors=max_errors, encoding=encoding))
