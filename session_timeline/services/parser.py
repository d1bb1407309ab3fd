"""
Session parser service - NDJSON session file parsing.

Framework-agnostic service for loading session files from disk. The service
owns file handles; everything below it works on byte chunks.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from pathlib import Path

from session_timeline.config import TimelineSettings, settings
from session_timeline.exceptions import SessionFileError
from session_timeline.protocols import LoggerProtocol
from session_timeline.schemas.operations import ErrorItem, ParsedSession, StreamItem
from session_timeline.services.lines import read_chunks
from session_timeline.services.streaming import SessionStream, collect_items

# ==============================================================================
# Session Parser Service
# ==============================================================================


class SessionParserService:
    """
    Service for parsing session NDJSON files.

    Streams files through SessionStream; per-line problems come back as
    data in the result, only an unreadable file raises.
    """

    def __init__(self, config: TimelineSettings | None = None) -> None:
        """
        Args:
            config: Settings to use (defaults to the lazily loaded module settings)
        """
        self.config = config if config is not None else settings

    def iter_file(self, path: Path, max_errors: int | None = None) -> Iterator[StreamItem]:
        """
        Stream the items of one session file.

        The file is opened on the first pull and closed when the stream is
        exhausted or the iterator is closed.

        Args:
            path: Session file
            max_errors: Error ceiling (defaults to MAX_ERRORS from settings)

        Raises:
            SessionFileError: If the file cannot be opened or read
        """
        ceiling = max_errors if max_errors is not None else self.config.MAX_ERRORS
        try:
            handle = path.open('rb')
        except OSError as e:
            raise SessionFileError(str(path), e.strerror or str(e)) from e

        with handle:
            stream = SessionStream(
                read_chunks(handle, self.config.READ_CHUNK_SIZE),
                max_errors=ceiling,
                encoding=self.config.ENCODING,
            )
            try:
                yield from stream
            finally:
                stream.close()

    async def parse_file(self, path: Path, logger: LoggerProtocol, max_errors: int | None = None) -> ParsedSession:
        """
        Parse one session file.

        Args:
            path: Session file
            logger: Logger instance
            max_errors: Error ceiling (defaults to MAX_ERRORS from settings)

        Returns:
            Metadata, events, per-line errors and stats

        Raises:
            SessionFileError: If the file cannot be opened
        """
        await logger.info(f'Parsing {path.name}')

        items: list[StreamItem] = []
        for item in self.iter_file(path, max_errors=max_errors):
            if isinstance(item, ErrorItem):
                await logger.warning(f'{path.name}:{item.error.line}: {item.error.reason}: {item.error.message}')
            items.append(item)

        session = collect_items(items)
        stats = session.stats
        await logger.info(
            f'Parsed {stats.parsedEvents} events from {path.name} '
            f'({stats.totalLines} lines, {stats.failedLines} failed, {stats.durationMs:.1f} ms)'
        )
        return session

    async def parse_files(self, paths: Sequence[Path], logger: LoggerProtocol) -> dict[str, ParsedSession]:
        """
        Parse several session files.

        Args:
            paths: Session files
            logger: Logger instance

        Returns:
            Dict mapping file name to its parsed session
        """
        results: dict[str, ParsedSession] = {}
        for path in paths:
            results[path.name] = await self.parse_file(path, logger)
        return results
