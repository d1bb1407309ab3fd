"""
Line validators for session metadata and timeline events.

Each validator takes one decoded line and either returns a validated model
or raises LineParseError. Validators never see blank lines, array framing
or state markers; the stream driver filters those first.

Event validation order:
1. Strict validation against the canonical union
2. Envelope unwrapping, then strict validation of the inner record
3. Foreign shape normalization (services.normalize), then validation
4. Coercion to Other, keeping the original value under `data`

Step 4 only fails for a record that claims a canonical type and carries
wrongly typed base fields (id/at/index); that is the one event-line case
reported as invalid_schema.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Mapping
from typing import Any

import pydantic

from session_timeline.exceptions import LineParseError
from session_timeline.schemas.session import (
    CANONICAL_EVENT_TYPES,
    SCHEMA_VERSION,
    ResponseItem,
    ResponseItemAdapter,
    SessionMeta,
)
from session_timeline.services.normalize import normalize_foreign_event, unwrap_event_envelope, unwrap_meta_envelope

logger = logging.getLogger(__name__)

# Lines that only frame an array-style file: '[' first, ']' last, '],' tolerated
ARRAY_FRAMING_TOKENS: frozenset[str] = frozenset({'[', ']', '],'})

_ANTI_JSON_PREFIX_RE = re.compile(r"^\)\]\}'?,?\s*")
_TRAILING_COMMA_RE = re.compile(r'[\s,]+$')

type EventValidator = Callable[[Any], ResponseItem]

# ==============================================================================
# JSON Decoding
# ==============================================================================


def is_framing_line(line: str) -> bool:
    """True for lines that only open or close an array-style file."""
    return line.strip() in ARRAY_FRAMING_TOKENS


def decode_json_line(line: str) -> Any:
    """
    Decode one line of JSON.

    Strips a BOM and the `)]}'` anti-JSON prefix; retries once without a
    trailing comma (array-style files put one after every record).

    Raises:
        LineParseError: invalid_json when the text is not JSON
    """
    text = _ANTI_JSON_PREFIX_RE.sub('', line.removeprefix('\ufeff'))
    try:
        return json.loads(text)
    except RecursionError as e:
        raise LineParseError('invalid_json', 'JSON nested too deeply') from e
    except ValueError as e:
        trimmed = _TRAILING_COMMA_RE.sub('', text)
        if trimmed != text:
            try:
                return json.loads(trimmed)
            except (ValueError, RecursionError):
                pass
        raise LineParseError('invalid_json', str(e)) from e


def is_state_marker(value: Any) -> bool:
    """True for internal bookkeeping records: {record_type: 'state', ...}."""
    if not isinstance(value, dict):
        return False
    marker = value.get('record_type') or value.get('recordType') or value.get('kind')
    return isinstance(marker, str) and marker.lower() == 'state'


def format_validation_error(error: pydantic.ValidationError) -> str:
    """One-line summary of a pydantic ValidationError."""
    parts = []
    for detail in error.errors():
        location = '.'.join(str(part) for part in detail['loc'])
        parts.append(f'{location}: {detail["msg"]}' if location else detail['msg'])
    return '; '.join(parts)


# ==============================================================================
# Session Metadata
# ==============================================================================


def parse_session_meta(value: Any) -> SessionMeta:
    """
    Validate a decoded first line as session metadata.

    Raises:
        LineParseError: invalid_schema when the value is not metadata-shaped
    """
    try:
        return SessionMeta.model_validate(unwrap_meta_envelope(value))
    except pydantic.ValidationError as e:
        raise LineParseError('invalid_schema', format_validation_error(e)) from e


def parse_session_meta_line(line: str) -> SessionMeta:
    """Decode and validate a metadata line."""
    return parse_session_meta(decode_json_line(line))


def pick_version(meta: SessionMeta | None) -> int | float | str:
    """Schema version declared by the metadata; SCHEMA_VERSION when absent or empty."""
    if meta is None or meta.version is None or meta.version == '':
        return SCHEMA_VERSION
    return meta.version


# ==============================================================================
# Timeline Events
# ==============================================================================


def _strict(value: Any) -> ResponseItem | None:
    try:
        return ResponseItemAdapter.validate_python(value)
    except pydantic.ValidationError:
        return None


def coerce_to_other(original: Any, payload: Any) -> ResponseItem:
    """
    Wrap any decoded value as an Other event.

    Base fields come from `payload` (the unwrapped record). They are kept
    as-is when the record claims a canonical type, and only when well
    typed otherwise, so untagged and unknown records always succeed.

    Raises:
        LineParseError: invalid_schema when a canonical-typed record has
            wrongly typed base fields
    """
    fields: dict[str, Any] = {}
    if isinstance(payload, Mapping):
        tag = payload.get('type')
        trusted = isinstance(tag, str) and tag in CANONICAL_EVENT_TYPES
        for key, expected in (('id', str), ('at', str), ('index', int)):
            if key not in payload:
                continue
            field_value = payload[key]
            well_typed = isinstance(field_value, expected) and not isinstance(field_value, bool)
            if trusted or well_typed:
                fields[key] = field_value
    try:
        return ResponseItemAdapter.validate_python({'type': 'Other', **fields, 'data': original})
    except pydantic.ValidationError as e:
        raise LineParseError('invalid_schema', format_validation_error(e)) from e


def validate_response_item(value: Any) -> ResponseItem:
    """
    Validate a decoded event line against schema version 1.

    Total for any JSON value except the degenerate case documented on
    coerce_to_other.
    """
    event = _strict(value)
    if event is not None:
        return event

    if not isinstance(value, dict):
        return coerce_to_other(value, value)

    payload = unwrap_event_envelope(value)
    if payload is not value:
        event = _strict(payload)
        if event is not None:
            return event

    candidate = normalize_foreign_event(payload)
    if candidate is not None:
        event = _strict(candidate)
        if event is not None:
            return event
        logger.debug('Normalized %s record did not validate; falling back to Other', candidate.get('type'))

    return coerce_to_other(value, payload)


def parse_response_item_line(line: str) -> ResponseItem:
    """Decode and validate an event line (schema version 1)."""
    return validate_response_item(decode_json_line(line))


# ==============================================================================
# Version Routing
# ==============================================================================

# Schema version -> event validator. Adding a version means adding one entry.
EVENT_VALIDATORS: dict[str, EventValidator] = {
    '1': validate_response_item,
}

LATEST_VERSION_KEY = '1'


def _version_key(version: int | float | str) -> str:
    if isinstance(version, float) and version.is_integer():
        return str(int(version))
    return str(version).strip()


def validator_for_version(version: int | float | str) -> EventValidator:
    """Event validator for a schema version; unknown versions use the latest one."""
    key = _version_key(version)
    validator = EVENT_VALIDATORS.get(key)
    if validator is None:
        logger.warning('Unknown session schema version %r; using version %s', version, LATEST_VERSION_KEY)
        return EVENT_VALIDATORS[LATEST_VERSION_KEY]
    return validator
