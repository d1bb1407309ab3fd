"""
Session NDJSON schema models.

This package contains Pydantic models for session metadata and timeline
events. All models are currently in models.py.
"""

from __future__ import annotations

from session_timeline.schemas.session.models import (
    CANONICAL_EVENT_TYPES,
    SCHEMA_VERSION,
    BaseEvent,
    CustomToolCallEvent,
    FileChangeEvent,
    FunctionCallEvent,
    GitInfo,
    LocalShellCallEvent,
    MessageEvent,
    OtherEvent,
    ReasoningEvent,
    ResponseItem,
    ResponseItemAdapter,
    SessionMeta,
    WebSearchCallEvent,
    WebSearchResult,
)

__all__ = [
    # Schema version
    'SCHEMA_VERSION',
    'CANONICAL_EVENT_TYPES',
    # Metadata
    'GitInfo',
    'SessionMeta',
    # Events
    'BaseEvent',
    'MessageEvent',
    'ReasoningEvent',
    'FunctionCallEvent',
    'LocalShellCallEvent',
    'WebSearchCallEvent',
    'WebSearchResult',
    'CustomToolCallEvent',
    'FileChangeEvent',
    'OtherEvent',
    # Union
    'ResponseItem',
    'ResponseItemAdapter',
]
