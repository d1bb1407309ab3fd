"""
File change index schemas.

Models for per-file changes recovered from apply-patch tool calls.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from session_timeline.schemas.base import StrictModel
from session_timeline.schemas.session import FileChangeEvent


class FileChangeIndex(StrictModel):
    """File changes grouped by path, plus the files each call touched.

    by_path: path -> changes in timeline order
    call_files: call id -> unique paths touched by that call
    """

    by_path: Mapping[str, Sequence[FileChangeEvent]]
    call_files: Mapping[str, Sequence[str]]

    def paths(self) -> list[str]:
        """Paths in first-touched order."""
        return list(self.by_path)
