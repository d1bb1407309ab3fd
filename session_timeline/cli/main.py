#!/usr/bin/env python3
"""
Command-line interface for session-timeline.

Provides commands to parse session logs and rebuild diffs from patch envelopes.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from session_timeline.cli.logger import CLILogger
from session_timeline.config import settings
from session_timeline.exceptions import SessionTimelineError
from session_timeline.schemas.operations import DoneItem, ErrorItem, EventItem, MetaItem, StreamItem
from session_timeline.schemas.session import (
    CustomToolCallEvent,
    FileChangeEvent,
    FunctionCallEvent,
    LocalShellCallEvent,
    MessageEvent,
    ReasoningEvent,
    ResponseItem,
    WebSearchCallEvent,
)
from session_timeline.services.diff import analyze_diff, parse_unified_diff_to_sides, safe_truncate
from session_timeline.services.file_changes import analyze_file_changes
from session_timeline.services.parser import SessionParserService
from session_timeline.services.patch import extract_apply_patch_text, parse_apply_patch

app = typer.Typer(
    name='session-timeline',
    help='Parse NDJSON session logs and rebuild file diffs',
    add_completion=False,
)

_SUMMARY_WIDTH = 60


# ==============================================================================
# Formatting
# ==============================================================================


def _shorten(text: str) -> str:
    text = ' '.join(text.split())
    return text if len(text) <= _SUMMARY_WIDTH else text[: _SUMMARY_WIDTH - 1] + '…'


def _describe_event(event: ResponseItem) -> str:
    match event:
        case MessageEvent():
            return f'Message {event.role}: {_shorten(event.content)}'
        case ReasoningEvent():
            return f'Reasoning: {_shorten(event.content)}'
        case FunctionCallEvent():
            return f'FunctionCall {event.name}'
        case LocalShellCallEvent():
            exit_code = '' if event.exitCode is None else f' (exit {event.exitCode})'
            return f'LocalShellCall: {_shorten(event.command)}{exit_code}'
        case WebSearchCallEvent():
            return f'WebSearchCall: {_shorten(event.query)}'
        case CustomToolCallEvent():
            return f'CustomToolCall {event.toolName}'
        case FileChangeEvent():
            return f'FileChange {event.path}'
        case _:
            return 'Other'


def format_item(item: StreamItem) -> str:
    """One human-readable line per stream item."""
    match item:
        case MetaItem():
            session_id = item.meta.id or '-'
            return f'meta   line {item.line}: {item.meta.timestamp} id={session_id} version={item.version}'
        case EventItem():
            return f'event  line {item.line}: {_describe_event(item.event)}'
        case ErrorItem():
            return f'error  line {item.error.line}: {item.error.reason}: {item.error.message}'
        case DoneItem():
            stats = item.stats
            return (
                f'done   {stats.totalLines} lines, {stats.parsedEvents} events, '
                f'{stats.failedLines} failed ({stats.durationMs:.1f} ms)'
            )
    raise TypeError(f'Unknown stream item: {item!r}')


def _read_text(file: Path) -> str:
    try:
        return file.read_text(encoding=settings.ENCODING, errors='replace')
    except OSError as e:
        typer.secho(f'Error: Cannot read {file}: {e.strerror or e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


def _echo_sides(diff: str) -> None:
    analysis = analyze_diff(diff)
    if analysis.binary:
        typer.secho('  (binary-looking content)', fg=typer.colors.YELLOW)
        return
    if analysis.large:
        typer.secho('  (large diff, truncated)', fg=typer.colors.YELLOW)
        diff = safe_truncate(diff)

    sides = parse_unified_diff_to_sides(diff)
    typer.secho('--- original', fg=typer.colors.RED)
    typer.echo(sides.original)
    typer.secho('+++ modified', fg=typer.colors.GREEN)
    typer.echo(sides.modified)


# ==============================================================================
# Commands
# ==============================================================================


@app.command()
def parse(
    file: Path = typer.Argument(..., help='Session NDJSON file'),
    max_errors: int | None = typer.Option(
        None, '--max-errors', '-m', min=1, help='Stop after N failed lines (default: SESSION_TIMELINE_MAX_ERRORS)'
    ),
    as_json: bool = typer.Option(False, '--json', help='Print each item as a JSON line'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Parse a session log and print its items in order."""
    asyncio.run(_parse_async(file, max_errors, as_json, verbose))


async def _parse_async(file: Path, max_errors: int | None, as_json: bool, verbose: bool) -> None:
    logger = CLILogger(verbose=verbose)
    service = SessionParserService()

    await logger.info(f'Parsing {file}')
    try:
        for item in service.iter_file(file, max_errors=max_errors):
            if as_json:
                typer.echo(item.model_dump_json(exclude_unset=True))
            else:
                typer.echo(format_item(item))
    except SessionTimelineError as e:
        typer.secho(f'Error: {e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


@app.command()
def patch(file: Path = typer.Argument(..., help='Patch envelope, or a JSON tool-call payload carrying one')) -> None:
    """Show each operation of an apply-patch envelope with both sides rebuilt."""
    patch_text = extract_apply_patch_text(_read_text(file))
    if patch_text is None:
        typer.secho(f'Error: No apply_patch envelope found in {file}', fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    ops = parse_apply_patch(patch_text)
    if not ops:
        typer.echo('Envelope contains no file operations')
        return

    for op in ops:
        target = f'{op.path} -> {op.newPath}' if op.newPath else op.path
        typer.secho(f'{op.op} {target}', bold=True)
        _echo_sides(op.unifiedDiff)
        typer.echo()


@app.command()
def sides(file: Path = typer.Argument(..., help='Unified diff file')) -> None:
    """Split a unified diff into its original and modified text."""
    _echo_sides(_read_text(file))


@app.command()
def changes(
    file: Path = typer.Argument(..., help='Session NDJSON file'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """List files changed by apply-patch calls in a session."""
    asyncio.run(_changes_async(file, verbose))


async def _changes_async(file: Path, verbose: bool) -> None:
    logger = CLILogger(verbose=verbose)
    service = SessionParserService()

    try:
        session = await service.parse_file(file, logger)
    except SessionTimelineError as e:
        typer.secho(f'Error: {e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    index = analyze_file_changes(session.events)
    if not index.by_path:
        typer.echo('No file changes found')
        return

    typer.secho(f'{len(index.by_path)} files changed by {len(index.call_files)} calls', bold=True)
    for path, path_changes in index.by_path.items():
        call_ids = ', '.join(change.id or '-' for change in path_changes)
        typer.echo(f'  {path} ({len(path_changes)}): {call_ids}')


def main() -> None:
    """Entry point for CLI."""
    app()


if __name__ == '__main__':
    main()
