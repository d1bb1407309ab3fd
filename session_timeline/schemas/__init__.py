"""
Schema definitions for session-timeline.

This package contains Pydantic models for various data schemas:
- session: session metadata and canonical timeline event types
- operations: service result schemas (stream items, patch ops, file change index)
"""

from __future__ import annotations

from session_timeline.schemas.base import StrictModel
from session_timeline.schemas.types import PermissiveModel

__all__ = [
    'StrictModel',
    'PermissiveModel',
]
