"""
Patch and diff operation schemas.

Results of the patch-envelope parser and the unified diff splitter.
"""

from __future__ import annotations

from typing import Literal

from session_timeline.schemas.base import StrictModel

PatchOpType = Literal['add', 'update', 'delete']


class ParsedPatchOp(StrictModel):
    """One file-level operation from an apply-patch envelope."""

    op: PatchOpType
    path: str
    newPath: str | None = None  # Set when an update carries '*** Move to:'
    unifiedDiff: str  # Minimal unified diff, suitable for parse_unified_diff_to_sides


class DiffSides(StrictModel):
    """Reconstructed before/after text of a diff."""

    original: str
    modified: str


class TextStats(StrictModel):
    """Size and binary heuristics for a block of text."""

    bytes: int
    lines: int
    binary: bool


class DiffAnalysis(StrictModel):
    """Whether a diff is present, binary-looking or too large to render."""

    present: bool
    binary: bool
    large: bool
    stats: TextStats
