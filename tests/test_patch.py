"""
Tests for apply-patch envelope parsing and extraction.
"""

from __future__ import annotations

import json

import pytest

from session_timeline.schemas.session import FunctionCallEvent
from session_timeline.services.diff import parse_unified_diff_to_sides
from session_timeline.services.patch import extract_apply_patch_text, parse_apply_patch, parse_patch_payload

UPDATE_PATCH = '*** Begin Patch\n*** Update File: a.txt\n@@\n-foo\n+bar\n*** End Patch'

MULTI_PATCH = '\n'.join(
    [
        '*** Begin Patch',
        '*** Add File: docs/new.md',
        '+# Title',
        '+body',
        '*** Update File: src/app.py',
        '*** Move to: src/main.py',
        '@@ def run():',
        '-    return 1',
        '+    return 2',
        '*** End of File',
        '*** Delete File: old.txt',
        '*** End Patch',
    ]
)

# ==============================================================================
# Envelope Parsing
# ==============================================================================


def test_update_round_trips_through_diff_splitter() -> None:
    ops = parse_apply_patch(UPDATE_PATCH)

    assert len(ops) == 1
    assert (ops[0].op, ops[0].path, ops[0].newPath) == ('update', 'a.txt', None)
    sides = parse_unified_diff_to_sides(ops[0].unifiedDiff)
    assert 'foo' in sides.original
    assert 'bar' in sides.modified


def test_operations_keep_envelope_order() -> None:
    assert [(op.op, op.path) for op in parse_apply_patch(MULTI_PATCH)] == [
        ('add', 'docs/new.md'),
        ('update', 'src/app.py'),
        ('delete', 'old.txt'),
    ]


def test_add_file_diff() -> None:
    add = parse_apply_patch(MULTI_PATCH)[0]
    assert add.unifiedDiff == '--- /dev/null\n+++ docs/new.md\n@@ -0,0 +1,2 @@\n+# Title\n+body'


def test_add_empty_file_still_has_a_hunk() -> None:
    add = parse_apply_patch('*** Begin Patch\n*** Add File: empty.txt\n*** End Patch')[0]
    assert add.unifiedDiff == '--- /dev/null\n+++ empty.txt\n@@ -0,0 +1,1 @@'


def test_delete_file_diff() -> None:
    delete = parse_apply_patch(MULTI_PATCH)[2]
    assert delete.unifiedDiff == '--- old.txt\n+++ /dev/null\n@@ -1,1 +0,0 @@\n-'


def test_move_sets_new_path_and_target_header() -> None:
    update = parse_apply_patch(MULTI_PATCH)[1]
    assert update.newPath == 'src/main.py'
    assert update.unifiedDiff.splitlines()[:3] == ['--- src/app.py', '+++ src/main.py', '@@ def run():']


def test_end_of_file_marker_is_not_a_terminator() -> None:
    update = parse_apply_patch(MULTI_PATCH)[1]
    assert 'End of File' not in update.unifiedDiff
    assert update.unifiedDiff.endswith('+    return 2')


def test_update_without_hunk_header_gets_placeholder() -> None:
    update = parse_apply_patch('*** Update File: x.py\n-a\n+b\n')[0]
    assert update.unifiedDiff.splitlines() == ['--- x.py', '+++ x.py', '@@ -1,1 +1,1 @@', '-a', '+b']


@pytest.mark.parametrize(
    ('patch_text', 'original', 'modified'),
    [
        (
            '*** Begin Patch\n*** Update File: q.sql\n@@\n select 1;\n--- note\n+-- new note\n*** End Patch',
            'select 1;\n-- note',
            'select 1;\n-- new note',
        ),
        ('*** Update File: init.lua\n--- old comment\n+++ counter\n', '-- old comment', '++ counter'),
    ],
    ids=['bare-hunk', 'placeholder-hunk'],
)
def test_update_keeps_lines_starting_with_dashes(patch_text: str, original: str, modified: str) -> None:
    update = parse_apply_patch(patch_text)[0]
    sides = parse_unified_diff_to_sides(update.unifiedDiff)
    assert (sides.original, sides.modified) == (original, modified)


def test_crlf_envelope_matches_lf() -> None:
    assert parse_apply_patch(MULTI_PATCH.replace('\n', '\r\n')) == parse_apply_patch(MULTI_PATCH)


@pytest.mark.parametrize('text', ['', 'hello', '*** Begin Patch\n*** End Patch', '*** Frobnicate File: x'])
def test_no_operations(text: str) -> None:
    assert parse_apply_patch(text) == []


# ==============================================================================
# Envelope Extraction
# ==============================================================================


def test_extract_from_surrounding_text() -> None:
    text = f'Please apply:\n{UPDATE_PATCH}\nthanks'
    assert extract_apply_patch_text(text) == UPDATE_PATCH


def test_extract_unterminated_envelope_runs_to_end() -> None:
    text = 'x *** Begin Patch\n*** Add File: a\n+1'
    assert extract_apply_patch_text(text) == '*** Begin Patch\n*** Add File: a\n+1'


def test_extract_from_argument_vector() -> None:
    assert extract_apply_patch_text({'command': ['apply_patch', UPDATE_PATCH]}) == UPDATE_PATCH


def test_extract_from_json_encoded_arguments() -> None:
    arguments = json.dumps({'command': ['apply_patch', UPDATE_PATCH], 'workdir': '/repo'})
    assert extract_apply_patch_text(arguments) == UPDATE_PATCH


def test_extract_from_heredoc_inside_shell_command() -> None:
    script = f"cd /repo && apply_patch <<'EOF'\n{UPDATE_PATCH}\nEOF\necho done"
    assert extract_apply_patch_text({'command': ['bash', '-lc', script]}) == UPDATE_PATCH


def test_heredoc_end_marker_must_be_on_its_own_line() -> None:
    script = f'apply_patch <<PATCH\n{UPDATE_PATCH}\nnot PATCH here\nPATCH\n'
    assert extract_apply_patch_text(script) == UPDATE_PATCH


def test_extract_from_pydantic_model() -> None:
    event = FunctionCallEvent(type='FunctionCall', name='apply_patch', args={'input': UPDATE_PATCH})
    assert extract_apply_patch_text(event) == UPDATE_PATCH


def test_extract_first_envelope_wins() -> None:
    second = UPDATE_PATCH.replace('a.txt', 'b.txt')
    assert extract_apply_patch_text([{'x': UPDATE_PATCH}, second]) == UPDATE_PATCH


def test_extract_survives_deep_nesting() -> None:
    payload: object = UPDATE_PATCH
    for _ in range(5000):
        payload = {'inner': [payload]}
    assert extract_apply_patch_text(payload) == UPDATE_PATCH


def test_extract_survives_cycles() -> None:
    payload: dict[str, object] = {'note': 'no patch here'}
    payload['self'] = payload
    payload['list'] = [payload, 1, None]
    assert extract_apply_patch_text(payload) is None


@pytest.mark.parametrize('payload', [None, 1, 'apply_patch', {'command': ['apply_patch']}, [], {}])
def test_extract_returns_none_without_marker(payload: object) -> None:
    assert extract_apply_patch_text(payload) is None


def test_parse_patch_payload() -> None:
    assert [op.path for op in parse_patch_payload({'command': ['apply_patch', MULTI_PATCH]})] == [
        'docs/new.md',
        'src/app.py',
        'old.txt',
    ]
    assert parse_patch_payload({'command': ['ls']}) == []
