"""
Unified diff splitting and size guards.

parse_unified_diff_to_sides rebuilds the two texts a diff was made from, as
far as the diff shows them. Gaps between hunks are marked with an ellipsis
line on both sides. The guards decide whether a diff is worth rendering.
"""

from __future__ import annotations

import re

from session_timeline.schemas.operations import DiffAnalysis, DiffSides, TextStats

HUNK_SEPARATOR = ('', '…', '')
NO_NEWLINE_MARKER = '\\ No newline at end of file'

_GIT_HEADER_PREFIXES = ('diff ', 'index ')
_FILE_HEADER_PREFIXES = ('--- ', '+++ ')
_HUNK_LINE_PREFIXES = (' ', '+', '-')
_HUNK_HEADER_RE = re.compile(r'^@@ -\d+(?:,(\d+))? \+\d+(?:,(\d+))? @@')

# Control characters other than tab, newline and carriage return
_NON_PRINTABLE_RE = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')
_LINE_BREAK_RE = re.compile(r'\r?\n')

DEFAULT_MAX_BYTES = 200_000
DEFAULT_MAX_LINES = 10_000
DIFF_MAX_BYTES = 500_000
DIFF_MAX_LINES = 20_000
BINARY_RATIO = 0.02
TRUNCATION_SUFFIX = '\n… (truncated)'


# ==============================================================================
# Splitting
# ==============================================================================


def _hunk_counts(header: str) -> tuple[int | None, int | None]:
    """Old and new line counts of a hunk header; (None, None) for a bare '@@'."""
    found = _HUNK_HEADER_RE.match(header)
    if found is None:
        return None, None
    old_count, new_count = found.group(1), found.group(2)
    return int(old_count or 1), int(new_count or 1)


def _opens_file_header(lines: list[str], i: int) -> bool:
    """True when lines[i:i + 3] is a '--- old' / '+++ new' / '@@' block."""
    return i + 2 < len(lines) and lines[i + 1].startswith('+++ ') and lines[i + 2].startswith('@@')


def parse_unified_diff_to_sides(diff: str) -> DiffSides:
    """
    Split unified-diff text into original and modified sides.

    Accepts diffs with or without file headers and hunk headers. Before the
    first hunk header, only context- or change-shaped lines start content;
    anything else (commit messages, stray prose) is skipped. Inside a hunk,
    unrecognized lines are kept on both sides.

    Removed '-- x' and added '++ x' lines look like file headers. While a
    hunk header's line counts are unspent they are always content; past
    that, a '---' line is a header only when '+++' and '@@' follow it.

    Args:
        diff: Diff text, LF or CRLF

    Returns:
        Both sides, joined with '\\n'. Never raises.
    """
    lines = diff.replace('\r\n', '\n').split('\n')
    if len(lines) > 1 and lines[-1] == '':
        lines.pop()

    original: list[str] = []
    modified: list[str] = []
    in_hunk = False
    old_left: int | None = None
    new_left: int | None = None

    for i, line in enumerate(lines):
        if line.startswith('@@'):
            in_hunk = True
            old_left, new_left = _hunk_counts(line)
            if original or modified:
                original.extend(HUNK_SEPARATOR)
                modified.extend(HUNK_SEPARATOR)
            continue

        if line.startswith(_GIT_HEADER_PREFIXES):
            in_hunk = False
            continue

        if line.startswith(_FILE_HEADER_PREFIXES) and not (old_left or new_left):
            if not in_hunk or (line.startswith('--- ') and _opens_file_header(lines, i)):
                in_hunk = False
                continue

        if not in_hunk:
            if line.startswith(_HUNK_LINE_PREFIXES):
                in_hunk = True
            else:
                continue

        if line.startswith(' '):
            original.append(line[1:])
            modified.append(line[1:])
            old_left = old_left - 1 if old_left else old_left
            new_left = new_left - 1 if new_left else new_left
        elif line.startswith('-'):
            original.append(line[1:])
            old_left = old_left - 1 if old_left else old_left
        elif line.startswith('+'):
            modified.append(line[1:])
            new_left = new_left - 1 if new_left else new_left
        elif line.startswith(NO_NEWLINE_MARKER):
            continue
        else:
            original.append(line)
            modified.append(line)

    return DiffSides(original='\n'.join(original), modified='\n'.join(modified))


# ==============================================================================
# Guards
# ==============================================================================


def analyze_text(text: str) -> TextStats:
    """Size in characters, line count, and a binary-content heuristic (any NUL, or >2% control characters)."""
    size = len(text)
    lines = len(_LINE_BREAK_RE.split(text)) if text else 0
    if '\x00' in text:
        return TextStats(bytes=size, lines=lines, binary=True)
    ratio = len(_NON_PRINTABLE_RE.findall(text)) / max(1, size)
    return TextStats(bytes=size, lines=lines, binary=ratio > BINARY_RATIO)


def is_too_large(text: str, *, max_bytes: int = DEFAULT_MAX_BYTES, max_lines: int = DEFAULT_MAX_LINES) -> bool:
    stats = analyze_text(text)
    return stats.bytes > max_bytes or stats.lines > max_lines


def safe_truncate(text: str, max_bytes: int = DEFAULT_MAX_BYTES) -> str:
    """Cut text to max_bytes characters and mark the cut."""
    if len(text) <= max_bytes:
        return text
    return text[:max_bytes] + TRUNCATION_SUFFIX


def analyze_diff(diff: str | None) -> DiffAnalysis:
    """
    Classify diff text for rendering.

    Args:
        diff: Diff text; None or empty means no diff

    Returns:
        DiffAnalysis with the larger diff limits applied
    """
    if not diff:
        return DiffAnalysis(present=False, binary=False, large=False, stats=TextStats(bytes=0, lines=0, binary=False))
    stats = analyze_text(diff)
    large = stats.bytes > DIFF_MAX_BYTES or stats.lines > DIFF_MAX_LINES
    return DiffAnalysis(present=True, binary=stats.binary, large=large, stats=stats)
