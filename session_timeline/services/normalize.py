"""
Foreign event shape normalization.

Session files are written by several generations of tooling. Besides the
canonical shapes in session_timeline.schemas.session, lines arrive as:

- Envelopes: {record_type: 'event', record: {...}} and Codex-style
  {type: 'response_item' | 'event_msg', payload: {...}, timestamp: ...}
- snake_case keys (call_id, exit_code, encrypted_content, duration_ms)
- Lowercase or dotted type tags (message, message.created, tool_call.completed)
- Multi-block message content ([{type: 'input_text', text: ...}, ...])
- Shell invocations logged as generic function calls named 'shell', with
  JSON-encoded arguments and outputs

Everything here is pure dict -> dict rewriting. The result is only a
candidate: validators.py re-validates it against the canonical union and
falls back to Other when it still does not fit.
"""

from __future__ import annotations

import json
import re
import shlex
from collections.abc import Mapping
from typing import Any

_CAMEL_RE = re.compile(r'_([a-z])')
_TAG_SEPARATOR_RE = re.compile(r'[-\s]+')
_TAG_HEAD_RE = re.compile(r'[.:/]')

# Keys that may carry the type tag, in priority order (after camelCase conversion)
_TAG_KEYS = ('type', 'eventType', 'event', 'kind', 'action', 'category')

# Keys that may hold the wrapped record, in priority order
_EVENT_RECORD_KEYS = ('record', 'event', 'payload', 'data', 'item')
_CODEX_PAYLOAD_KEYS = ('payload', 'data', 'record', 'event', 'item')
_META_RECORD_KEYS = ('record', 'data', 'payload')
_SESSION_META_PAYLOAD_KEYS = ('payload', 'data', 'record')

ENCRYPTED_PLACEHOLDER = '[encrypted]'


# ==============================================================================
# Value Helpers
# ==============================================================================


def as_text(value: Any) -> str | None:
    """Strings pass through, None stays None, anything else is JSON-encoded."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


def loads_or_text(text: str | None) -> Any:
    """Decode JSON text, returning the text itself when it is not JSON."""
    if not text:
        return None
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return text


def _first(source: Mapping[str, Any], *keys: str) -> Any:
    """Value of the first key that is present and not None."""
    for key in keys:
        value = source.get(key)
        if value is not None:
            return value
    return None


def _integer(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _number(value: Any) -> int | float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    return None


def _compact(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Drop None values so absent fields stay unset on the validated model."""
    return {key: value for key, value in fields.items() if value is not None}


def to_camel_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    """Convert top-level snake_case keys to camelCase (call_id -> callId)."""
    return {_CAMEL_RE.sub(lambda m: m.group(1).upper(), key): value for key, value in data.items()}


def command_text(value: Any) -> str | None:
    """Render a command as one string. Argument vectors are shell-quoted."""
    if isinstance(value, list) and all(isinstance(part, str) for part in value):
        return shlex.join(value)
    return as_text(value)


# ==============================================================================
# Content Flattening
# ==============================================================================


def flatten_content(content: Any) -> str | None:
    """
    Flatten message content to plain text.

    A list of blocks is joined with newlines; blocks carrying `text`
    contribute that text, other blocks their JSON encoding.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for block in content:
            if isinstance(block, dict) and 'text' in block:
                parts.append(str(block['text']))
            else:
                parts.append(as_text(block) or '')
        return '\n'.join(parts)
    return as_text(content)


def extract_reasoning_content(content: Any, summary: Any, encrypted: bool) -> str | None:
    """Reasoning text: content, else summary, else '[encrypted]' when only ciphertext exists."""
    text = flatten_content(content)
    if text is not None and text.strip():
        return text
    text = flatten_content(summary)
    if text is not None and text.strip():
        return text
    if encrypted:
        return ENCRYPTED_PLACEHOLDER
    return None


def extract_message_from_response(response: Any) -> str | None:
    """Pull text out of an embedded API response ({output_text: [...]} or {output: [{content}]})."""
    if not isinstance(response, dict):
        return None
    output_text = response.get('output_text')
    if isinstance(output_text, list) and output_text:
        return '\n'.join(x if isinstance(x, str) else as_text(x) or '' for x in output_text)
    output = response.get('output')
    if isinstance(output, list):
        parts = []
        for segment in output:
            if isinstance(segment, dict) and isinstance(segment.get('content'), list):
                text = flatten_content(segment['content'])
                if text:
                    parts.append(text)
        if parts:
            return '\n'.join(parts)
    return None


def shell_output_fields(output: Mapping[str, Any]) -> dict[str, Any]:
    """
    Map a decoded shell tool result onto LocalShellCall output fields.

    Accepts both {stdout, stderr, exitCode|exit_code, durationMs|duration_ms}
    and the Codex form {output, metadata: {exit_code, duration_seconds}}.
    """
    metadata = output.get('metadata')
    metadata = metadata if isinstance(metadata, dict) else {}

    exit_code = _integer(_first(output, 'exitCode', 'exit_code'))
    if exit_code is None:
        exit_code = _integer(metadata.get('exit_code'))

    duration = _number(_first(output, 'durationMs', 'duration_ms'))
    if duration is None:
        seconds = _number(metadata.get('duration_seconds'))
        if seconds is not None:
            duration = seconds * 1000

    return _compact(
        {
            'stdout': as_text(_first(output, 'stdout', 'output')),
            'stderr': as_text(output.get('stderr')),
            'exitCode': exit_code,
            'durationMs': duration,
        }
    )


# ==============================================================================
# Envelope Unwrapping
# ==============================================================================


def _inner_record(data: Mapping[str, Any], keys: tuple[str, ...]) -> dict[str, Any] | None:
    for key in keys:
        inner = data.get(key)
        if isinstance(inner, dict) and inner:
            return inner
    return None


def _lower_tag(data: Mapping[str, Any], *keys: str) -> str | None:
    tag = _first(data, *keys)
    return tag.lower() if isinstance(tag, str) else None


def unwrap_meta_envelope(value: Any) -> Any:
    """Unwrap {record_type: 'meta', record: {...}} and {type: 'session_meta', payload: {...}}."""
    if not isinstance(value, dict):
        return value
    payload: dict[str, Any] = value
    if _lower_tag(payload, 'record_type', 'recordType') == 'meta':
        payload = _inner_record(payload, _META_RECORD_KEYS) or payload
    if _lower_tag(payload, 'type') == 'session_meta':
        payload = _inner_record(payload, _SESSION_META_PAYLOAD_KEYS) or payload
    return payload


def unwrap_event_envelope(data: dict[str, Any]) -> dict[str, Any]:
    """
    Unwrap event envelopes; returns `data` itself when it is not wrapped.

    The Codex envelope's timestamp becomes the record's `at` unless the
    record already has one. The input dict is never modified.
    """
    payload = data
    if _lower_tag(payload, 'record_type', 'recordType') in ('event', 'trace', 'log'):
        payload = _inner_record(payload, _EVENT_RECORD_KEYS) or payload

    if _lower_tag(payload, 'type') in ('response_item', 'event_msg'):
        inner = _inner_record(payload, _CODEX_PAYLOAD_KEYS)
        if inner is not None:
            timestamp = payload.get('timestamp')
            if isinstance(timestamp, str) and not inner.get('at'):
                inner = {**inner, 'at': timestamp}
            payload = inner
    return payload


def type_tag(base: Mapping[str, Any]) -> str | None:
    """
    Normalized type tag of a camelCased record.

    Lowercased, dashes/spaces folded to '_', and only the head of a dotted
    tag kept: 'message.created' -> 'message', 'Tool-Call.completed' -> 'tool_call'.
    """
    for key in _TAG_KEYS:
        raw = base.get(key)
        if isinstance(raw, str):
            folded = _TAG_SEPARATOR_RE.sub('_', raw.lower())
            return _TAG_HEAD_RE.split(folded, maxsplit=1)[0]
    return None


# ==============================================================================
# Foreign Shape Mapping
# ==============================================================================


def _base_fields(base: Mapping[str, Any], event_id: Any = None) -> dict[str, Any]:
    event_id = event_id if event_id is not None else base.get('id')
    return {'id': event_id, 'at': base.get('at'), 'index': base.get('index')}


def _message(base: Mapping[str, Any], role: str, content: str) -> dict[str, Any]:
    model = base.get('model')
    return _compact(
        {
            'type': 'Message',
            'role': role,
            'content': content,
            'model': model if isinstance(model, str) else None,
            **_base_fields(base),
        }
    )


def _shell_argv_fields(command: Any) -> dict[str, Any]:
    fields: dict[str, Any] = {'command': command_text(command) or ''}
    if isinstance(command, list):
        fields['argv'] = command
    return fields


def _shell_call(base: Mapping[str, Any], call_id: str | None) -> dict[str, Any]:
    raw_args = _first(base, 'arguments', 'args')
    decoded = loads_or_text(raw_args) if isinstance(raw_args, str) else raw_args
    arguments = decoded if isinstance(decoded, dict) else {}
    return _compact(
        {
            'type': 'LocalShellCall',
            **_shell_argv_fields(arguments.get('command')),
            'cwd': as_text(_first(arguments, 'cwd', 'workdir')),
            'callId': call_id,
            **_base_fields(base, call_id),
        }
    )


def _shell_output(base: Mapping[str, Any], call_id: str | None, raw: Any) -> dict[str, Any]:
    decoded = loads_or_text(raw) if isinstance(raw, str) else raw
    output = decoded if isinstance(decoded, dict) else {'stdout': decoded}
    return _compact(
        {
            'type': 'LocalShellCall',
            'command': as_text(output.get('command')) or '',
            'cwd': as_text(output.get('cwd')),
            **shell_output_fields(output),
            'callId': call_id,
            **_base_fields(base, call_id),
        }
    )


def _tool_result(raw: Any) -> Any:
    """Decode a tool result; a list of {text} blocks is joined into one string."""
    parsed = loads_or_text(as_text(raw))
    if isinstance(parsed, list) and parsed and all(isinstance(x, dict) and 'text' in x for x in parsed):
        return '\n'.join(str(x['text']) for x in parsed)
    return parsed


def _local_shell_call(base: Mapping[str, Any]) -> dict[str, Any]:
    action = base.get('action')
    action = action if isinstance(action, dict) else {}
    return _compact(
        {
            'type': 'LocalShellCall',
            **_shell_argv_fields(_first(base, 'command') or action.get('command')),
            'cwd': as_text(_first(base, 'cwd') or _first(action, 'cwd', 'working_directory')),
            'exitCode': _integer(base.get('exitCode')),
            'stdout': as_text(base.get('stdout')),
            'stderr': as_text(base.get('stderr')),
            'durationMs': _number(base.get('durationMs')),
            'callId': as_text(base.get('callId')),
            **_base_fields(base),
        }
    )


def _web_search_call(base: Mapping[str, Any]) -> dict[str, Any]:
    action = base.get('action')
    action = action if isinstance(action, dict) else {}
    results = base.get('results')
    return _compact(
        {
            'type': 'WebSearchCall',
            'query': as_text(_first(base, 'query') or action.get('query')) or '',
            'provider': as_text(base.get('provider')),
            'results': [
                _compact(
                    {
                        'title': as_text(r.get('title')),
                        'url': as_text(r.get('url')),
                        'snippet': as_text(r.get('snippet')),
                    }
                )
                for r in results
                if isinstance(r, dict)
            ]
            if isinstance(results, list)
            else None,
            **_base_fields(base),
        }
    )


def _file_change(base: Mapping[str, Any], *diff_keys: str) -> dict[str, Any]:
    return _compact(
        {
            'type': 'FileChange',
            'path': as_text(_first(base, 'path', 'file', 'filename')) or '',
            'diff': as_text(_first(base, *diff_keys)),
            **_base_fields(base),
        }
    )


def normalize_foreign_event(data: Mapping[str, Any]) -> dict[str, Any] | None:
    """
    Rewrite a foreign record into a canonical event candidate.

    Args:
        data: A decoded JSON object, already unwrapped from any envelope

    Returns:
        A dict shaped like one of the canonical variants, or None when the
        record's tag is unknown and its shape matches no heuristic
    """
    base = to_camel_keys(data)
    tag = type_tag(base)
    call_id = as_text(base.get('callId'))

    match tag:
        case 'agent_reasoning':
            content = extract_reasoning_content(
                _first(base, 'text', 'content'), base.get('summary'), 'encryptedContent' in base
            )
            if content is None:
                return None
            return _compact({'type': 'Reasoning', 'content': content, **_base_fields(base)})

        case 'agent_message' | 'summary_text':
            content = flatten_content(_first(base, 'message', 'text', 'content'))
            if content is None:
                return None
            return _message(base, 'assistant', content)

        case 'tool_call' | 'functioncall' | 'function_call':
            name = as_text(base.get('tool')) or as_text(base.get('name')) or 'tool'
            if name == 'shell':
                return _shell_call(base, call_id)
            return _compact(
                {
                    'type': 'FunctionCall',
                    'name': name,
                    'args': _first(base, 'args', 'arguments'),
                    'result': _first(base, 'output', 'result'),
                    'callId': call_id,
                    **_base_fields(base, call_id),
                }
            )

        case 'tool_call_output' | 'function_call_output' | 'tool_result':
            name = as_text(base.get('tool')) or as_text(base.get('name')) or 'tool'
            raw = _first(base, 'output', 'result')
            if name == 'shell':
                return _shell_output(base, call_id, raw)
            return _compact(
                {
                    'type': 'FunctionCall',
                    'name': name,
                    'result': _tool_result(raw),
                    'callId': call_id,
                    **_base_fields(base, call_id),
                }
            )

        case 'message':
            role = base.get('role')
            content = flatten_content(base.get('content'))
            if content is None:
                content = extract_message_from_response(base.get('response'))
            if content is None:
                return None
            return _message(base, role if isinstance(role, str) else 'assistant', content)

        case 'assistant_message' | 'user_message' | 'system_message' | 'assistant' | 'user' | 'system':
            content = flatten_content(_first(base, 'content', 'text', 'message'))
            if content is None:
                return None
            return _message(base, tag.removesuffix('_message'), content)

        case 'reasoning':
            content = extract_reasoning_content(base.get('content'), base.get('summary'), 'encryptedContent' in base)
            if content is None:
                return None
            return _compact({'type': 'Reasoning', 'content': content, **_base_fields(base)})

        case 'local_shell_call':
            return _local_shell_call(base)

        case 'web_search_call':
            return _web_search_call(base)

        case 'custom_tool_call' | 'custom_tool_call_output':
            return _compact(
                {
                    'type': 'CustomToolCall',
                    'toolName': as_text(_first(base, 'toolName', 'name')) or 'tool',
                    'input': base.get('input'),
                    'output': _tool_result(base['output']) if 'output' in base else None,
                    'callId': call_id,
                    **_base_fields(base, call_id),
                }
            )

        case 'file_change':
            return _file_change(base, 'diff', 'patch')

        case 'file_write' | 'file_written' | 'file_update' | 'file_updated' | 'patch' | 'diff':
            return _file_change(base, 'diff', 'patch', 'output', 'result')

    return _infer_from_shape(base)


def _infer_from_shape(base: Mapping[str, Any]) -> dict[str, Any] | None:
    """Guess the variant of an untagged or unknown-tagged record from its fields."""
    if isinstance(base.get('path'), str) and (isinstance(base.get('diff'), str) or isinstance(base.get('patch'), str)):
        return _file_change(base, 'diff', 'patch')

    if isinstance(base.get('command'), str):
        return _local_shell_call(base)

    if isinstance(base.get('query'), str) and isinstance(base.get('results'), list):
        return _web_search_call(base)

    name = _first(base, 'toolName', 'name')
    if isinstance(name, str) and _first(base, 'args', 'result', 'output') is not None:
        call_id = as_text(base.get('callId'))
        return _compact(
            {
                'type': 'FunctionCall',
                'name': name,
                'args': base.get('args'),
                'result': _first(base, 'result', 'output'),
                'callId': call_id,
                **_base_fields(base, call_id),
            }
        )

    role = base.get('role')
    if isinstance(role, str):
        content = flatten_content(_first(base, 'content', 'text'))
        if content is not None:
            return _message(base, role, content)

    return None
