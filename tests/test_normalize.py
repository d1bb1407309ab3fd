"""
Tests for foreign record normalization.
"""

from __future__ import annotations

import copy

import pytest

from session_timeline.services.normalize import (
    ENCRYPTED_PLACEHOLDER,
    flatten_content,
    loads_or_text,
    normalize_foreign_event,
    shell_output_fields,
    to_camel_keys,
    type_tag,
    unwrap_event_envelope,
)


@pytest.mark.parametrize(
    ('record', 'expected'),
    [
        ({'type': 'Message.Created'}, 'message'),
        ({'eventType': 'tool-call.completed'}, 'tool_call'),
        ({'kind': 'file change'}, 'file_change'),
        ({'event': 'agent_message:v2'}, 'agent_message'),
        ({'type': 3, 'kind': 'reasoning'}, 'reasoning'),
        ({}, None),
    ],
)
def test_type_tag(record: dict[str, object], expected: str | None) -> None:
    assert type_tag(record) == expected


def test_to_camel_keys_only_touches_top_level() -> None:
    converted = to_camel_keys({'call_id': 1, 'exit_code': {'duration_ms': 2}})
    assert converted == {'callId': 1, 'exitCode': {'duration_ms': 2}}


def test_flatten_content() -> None:
    assert flatten_content('plain') == 'plain'
    assert flatten_content([{'type': 'input_text', 'text': 'a'}, {'text': 'b'}]) == 'a\nb'
    assert flatten_content([{'type': 'image'}]) == '{"type": "image"}'
    assert flatten_content(None) is None


def test_shell_function_call_becomes_local_shell_call() -> None:
    record = {
        'type': 'function_call',
        'name': 'shell',
        'arguments': '{"command": ["bash", "-lc", "ls -la"], "workdir": "/repo"}',
        'call_id': 'c1',
    }
    assert normalize_foreign_event(record) == {
        'type': 'LocalShellCall',
        'command': "bash -lc 'ls -la'",
        'argv': ['bash', '-lc', 'ls -la'],
        'cwd': '/repo',
        'callId': 'c1',
        'id': 'c1',
    }


def test_shell_output_json_is_decoded() -> None:
    record = {
        'type': 'function_call_output',
        'name': 'shell',
        'call_id': 'c1',
        'output': '{"stdout": "hi", "stderr": "", "exit_code": 2}',
    }
    normalized = normalize_foreign_event(record)
    assert normalized is not None
    assert normalized['type'] == 'LocalShellCall'
    assert (normalized['stdout'], normalized['stderr'], normalized['exitCode']) == ('hi', '', 2)


def test_shell_output_plain_text_is_stdout() -> None:
    record = {'type': 'function_call_output', 'name': 'shell', 'output': 'plain text'}
    normalized = normalize_foreign_event(record)
    assert normalized is not None
    assert normalized['stdout'] == 'plain text'
    assert normalized['command'] == ''


def test_generic_tool_output_text_blocks_are_joined() -> None:
    record = {'type': 'function_call_output', 'call_id': 'c2', 'output': '[{"text": "one"}, {"text": "two"}]'}
    normalized = normalize_foreign_event(record)
    assert normalized is not None
    assert (normalized['type'], normalized['result'], normalized['callId']) == ('FunctionCall', 'one\ntwo', 'c2')


@pytest.mark.parametrize(
    ('record', 'content'),
    [
        ({'type': 'reasoning', 'content': 'thinking'}, 'thinking'),
        ({'type': 'reasoning', 'content': '', 'summary': [{'text': 'short'}]}, 'short'),
        ({'type': 'reasoning', 'content': ' ', 'encrypted_content': 'gAAA'}, ENCRYPTED_PLACEHOLDER),
        ({'type': 'agent_reasoning', 'text': 'aloud'}, 'aloud'),
    ],
)
def test_reasoning_content_fallbacks(record: dict[str, object], content: str) -> None:
    normalized = normalize_foreign_event(record)
    assert normalized is not None
    assert normalized['type'] == 'Reasoning'
    assert normalized['content'] == content


def test_reasoning_without_any_text_is_not_normalized() -> None:
    assert normalize_foreign_event({'type': 'reasoning'}) is None


def test_local_shell_call_action_form() -> None:
    record = {
        'type': 'local_shell_call',
        'call_id': 'c3',
        'action': {'type': 'exec', 'command': ['git', 'status'], 'working_directory': '/w'},
    }
    normalized = normalize_foreign_event(record)
    assert normalized is not None
    assert (normalized['command'], normalized['cwd'], normalized['callId']) == ('git status', '/w', 'c3')


def test_web_search_action_query() -> None:
    normalized = normalize_foreign_event({'type': 'web_search_call', 'action': {'query': 'q'}})
    assert normalized == {'type': 'WebSearchCall', 'query': 'q'}


def test_file_write_family() -> None:
    normalized = normalize_foreign_event({'type': 'file_written', 'file': 'a.txt', 'patch': '+x'})
    assert normalized == {'type': 'FileChange', 'path': 'a.txt', 'diff': '+x'}


@pytest.mark.parametrize(
    ('record', 'variant'),
    [
        ({'path': 'a.txt', 'diff': '+x'}, 'FileChange'),
        ({'command': 'ls'}, 'LocalShellCall'),
        ({'query': 'q', 'results': []}, 'WebSearchCall'),
        ({'name': 'grep', 'args': {}}, 'FunctionCall'),
        ({'role': 'user', 'text': 'hi'}, 'Message'),
    ],
)
def test_untagged_records_are_inferred_from_shape(record: dict[str, object], variant: str) -> None:
    normalized = normalize_foreign_event(record)
    assert normalized is not None
    assert normalized['type'] == variant


def test_unwrap_event_envelope_does_not_modify_input() -> None:
    data = {'type': 'response_item', 'timestamp': 'T', 'payload': {'type': 'message', 'role': 'user', 'content': 'x'}}
    before = copy.deepcopy(data)
    inner = unwrap_event_envelope(data)
    assert data == before
    assert inner['at'] == 'T'


def test_unwrap_event_envelope_keeps_inner_timestamp() -> None:
    data = {'type': 'event_msg', 'timestamp': 'outer', 'payload': {'type': 'agent_message', 'at': 'inner'}}
    assert unwrap_event_envelope(data)['at'] == 'inner'


def test_unwrap_event_envelope_returns_unwrapped_input_itself() -> None:
    data = {'type': 'Message'}
    assert unwrap_event_envelope(data) is data


def test_shell_output_fields_codex_metadata() -> None:
    output = {'output': 'done', 'metadata': {'exit_code': 1, 'duration_seconds': 1.5}}
    assert shell_output_fields(output) == {'stdout': 'done', 'exitCode': 1, 'durationMs': 1500.0}


@pytest.mark.parametrize(
    ('text', 'expected'),
    [('{"a": 1}', {'a': 1}), ('not json', 'not json'), ('', None), (None, None)],
)
def test_loads_or_text(text: str | None, expected: object) -> None:
    assert loads_or_text(text) == expected


def test_loads_or_text_keeps_deeply_nested_text() -> None:
    text = '[' * 100_000
    assert loads_or_text(text) == text
