"""
Tests for the session-timeline command line.
"""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from session_timeline.cli.main import app

runner = CliRunner()

FIXTURES_DIR = Path(__file__).parent.parent / 'fixtures' / 'sessions'

META = '{"timestamp":"2025-01-01T00:00:00Z","id":"s1"}'
MESSAGE = '{"type":"Message","role":"user","content":"hi"}'
PATCH = '*** Begin Patch\n*** Update File: a.txt\n@@\n-foo\n+bar\n*** End Patch\n'


def write(tmp_path: Path, name: str, text: str) -> Path:
    path = tmp_path / name
    path.write_text(text)
    return path


def test_parse_prints_items(tmp_path: Path) -> None:
    path = write(tmp_path, 's.jsonl', f'{META}\n{MESSAGE}\nbad\n')

    result = runner.invoke(app, ['parse', str(path)])

    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0] == 'meta   line 1: 2025-01-01T00:00:00Z id=s1 version=1'
    assert lines[1] == 'event  line 2: Message user: hi'
    assert lines[2].startswith('error  line 3: invalid_json: ')
    assert lines[3].startswith('done   3 lines, 1 events, 1 failed')


def test_parse_json_lines(tmp_path: Path) -> None:
    path = write(tmp_path, 's.jsonl', f'{META}\n{MESSAGE}\n')

    result = runner.invoke(app, ['parse', str(path), '--json'])

    assert result.exit_code == 0, result.output
    items = [json.loads(line) for line in result.output.splitlines()]
    assert [item['kind'] for item in items] == ['meta', 'event', 'done']
    assert items[1]['event'] == {'type': 'Message', 'role': 'user', 'content': 'hi'}


def test_parse_max_errors(tmp_path: Path) -> None:
    path = write(tmp_path, 's.jsonl', f'{META}\nbad\nbad\n{MESSAGE}\n')

    result = runner.invoke(app, ['parse', str(path), '--max-errors', '1'])

    assert result.exit_code == 0, result.output
    assert result.output.splitlines()[-1].startswith('done   2 lines, 0 events, 1 failed')


def test_parse_rejects_non_positive_max_errors(tmp_path: Path) -> None:
    path = write(tmp_path, 's.jsonl', META)
    result = runner.invoke(app, ['parse', str(path), '--max-errors', '0'])
    assert result.exit_code == 2


def test_parse_missing_file(tmp_path: Path) -> None:
    result = runner.invoke(app, ['parse', str(tmp_path / 'missing.jsonl')])
    assert result.exit_code == 1
    assert 'Error: Cannot read session file' in result.output


def test_patch_from_envelope(tmp_path: Path) -> None:
    path = write(tmp_path, 'change.patch', PATCH)

    result = runner.invoke(app, ['patch', str(path)])

    assert result.exit_code == 0, result.output
    assert result.output.splitlines()[:5] == ['update a.txt', '--- original', 'foo', '+++ modified', 'bar']


def test_patch_from_json_payload(tmp_path: Path) -> None:
    path = write(tmp_path, 'call.json', json.dumps({'command': ['apply_patch', PATCH]}))

    result = runner.invoke(app, ['patch', str(path)])

    assert result.exit_code == 0, result.output
    assert 'update a.txt' in result.output


def test_patch_without_envelope(tmp_path: Path) -> None:
    path = write(tmp_path, 'note.txt', 'nothing to see')
    result = runner.invoke(app, ['patch', str(path)])
    assert result.exit_code == 1
    assert 'No apply_patch envelope found' in result.output


def test_sides(tmp_path: Path) -> None:
    path = write(tmp_path, 'x.diff', '--- a/x\n+++ b/x\n@@ -1,2 +1,2 @@\n keep\n-old\n+new\n')

    result = runner.invoke(app, ['sides', str(path)])

    assert result.exit_code == 0, result.output
    assert result.output.splitlines() == ['--- original', 'keep', 'old', '+++ modified', 'keep', 'new']


def test_sides_missing_file(tmp_path: Path) -> None:
    result = runner.invoke(app, ['sides', str(tmp_path / 'none.diff')])
    assert result.exit_code == 1


def test_changes_lists_patched_files() -> None:
    result = runner.invoke(app, ['changes', str(FIXTURES_DIR / 'codex_rollout.jsonl')])

    assert result.exit_code == 0, result.output
    assert '1 files changed by 1 calls' in result.output
    assert '  a.txt (1): call_1' in result.output


def test_changes_none_found(tmp_path: Path) -> None:
    path = write(tmp_path, 's.jsonl', f'{META}\n{MESSAGE}\n')
    result = runner.invoke(app, ['changes', str(path)])
    assert result.exit_code == 0, result.output
    assert 'No file changes found' in result.output
