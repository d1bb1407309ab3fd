"""
Pydantic models for session NDJSON records.

This module defines the canonical shapes a session log is reduced to: one
SessionMeta for the first content line, and one ResponseItem per event line.

Canonical event union:
- Eight variants discriminated by the `type` field: Message, Reasoning,
  FunctionCall, LocalShellCall, WebSearchCall, CustomToolCall, FileChange, Other
- Every variant carries the optional base fields id/at/index
- Unknown keys are preserved (PermissiveModel) so writers can add fields
  without breaking validation; known fields are strictly typed
- Other is the escape hatch: it holds any unrecognized payload under `data`

Field names follow the wire format (camelCase: durationMs, exitCode,
toolName). Legacy and foreign encodings (snake_case keys, lowercase or dotted
type tags, Codex-style envelopes) are not modeled here; they are rewritten
into these shapes by session_timeline.services.normalize before validation.

Round-trip serialization:
- Use model_dump(exclude_unset=True, mode='json') to reproduce the record
  without fields the input never carried
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Annotated, Any, Literal

import pydantic

from session_timeline.schemas.types import PermissiveModel

# ==============================================================================
# Schema Version
# ==============================================================================

SCHEMA_VERSION = 1
"""Event schema version used when the session metadata does not declare one."""


# ==============================================================================
# Session Metadata
# ==============================================================================


class GitInfo(PermissiveModel):
    """Git state captured when the session started. All fields optional."""

    repo: str | None = None
    branch: str | None = None
    commit: str | None = None
    remote: str | None = None
    dirty: bool | None = None


class SessionMeta(PermissiveModel):
    """Session-level metadata from the first content line of the file.

    Only timestamp is required. Writers that omit the session id are
    accepted; `id` is then None and absent from model_fields_set.
    """

    timestamp: Annotated[str, pydantic.Field(min_length=1)]
    id: str | None = None
    instructions: str | None = None
    git: GitInfo | None = None
    version: int | float | str | None = None  # Selects the event schema; see services.validators


# ==============================================================================
# Timeline Events
# ==============================================================================


class BaseEvent(PermissiveModel):
    """Fields shared by every timeline event."""

    id: str | None = None
    at: str | None = None  # ISO-8601 timestamp as written
    index: int | None = None


class MessageEvent(BaseEvent):
    """Message emitted by user/assistant/system. Content is plain text."""

    type: Literal['Message']
    role: str
    content: str
    model: str | None = None


class ReasoningEvent(BaseEvent):
    """Model reasoning trace. Content is '[encrypted]' when only ciphertext was logged."""

    type: Literal['Reasoning']
    content: str


class FunctionCallEvent(BaseEvent):
    """Generic function/tool call. Arguments and result are opaque payloads."""

    type: Literal['FunctionCall']
    name: str
    args: Any = None
    result: Any = None
    durationMs: int | float | None = None


class LocalShellCallEvent(BaseEvent):
    """Local shell command execution."""

    type: Literal['LocalShellCall']
    command: str
    cwd: str | None = None
    exitCode: int | None = None
    stdout: str | None = None
    stderr: str | None = None
    durationMs: int | float | None = None


class WebSearchResult(PermissiveModel):
    """Single web search hit."""

    title: str | None = None
    url: str | None = None
    snippet: str | None = None


class WebSearchCallEvent(BaseEvent):
    """Web search action."""

    type: Literal['WebSearchCall']
    query: str
    provider: str | None = None
    results: Sequence[WebSearchResult] | None = None


class CustomToolCallEvent(BaseEvent):
    """Custom/plugin tool call. Input and output are opaque payloads."""

    type: Literal['CustomToolCall']
    toolName: str
    input: Any = None
    output: Any = None


class FileChangeEvent(BaseEvent):
    """File change, optionally with unified diff text."""

    type: Literal['FileChange']
    path: str
    diff: str | None = None


class OtherEvent(BaseEvent):
    """Fallback for unrecognized records. `data` holds the original payload verbatim."""

    type: Literal['Other']
    data: Any = None


# ==============================================================================
# Response Item (Discriminated Union)
# ==============================================================================

ResponseItem = Annotated[
    MessageEvent
    | ReasoningEvent
    | FunctionCallEvent
    | LocalShellCallEvent
    | WebSearchCallEvent
    | CustomToolCallEvent
    | FileChangeEvent
    | OtherEvent,
    pydantic.Field(discriminator='type'),
]

# Type adapter for validating events (required for union types)
ResponseItemAdapter: pydantic.TypeAdapter[ResponseItem] = pydantic.TypeAdapter(ResponseItem)

CANONICAL_EVENT_TYPES: frozenset[str] = frozenset(
    {
        'Message',
        'Reasoning',
        'FunctionCall',
        'LocalShellCall',
        'WebSearchCall',
        'CustomToolCall',
        'FileChange',
        'Other',
    }
)
