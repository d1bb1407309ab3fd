"""
File changes recovered from apply-patch tool calls.

Sessions rarely log FileChange events directly; edits show up as shell or
tool calls carrying a patch envelope. This module finds those calls and
turns each touched file into a synthetic FileChange.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from typing import Any

from session_timeline.schemas.operations import FileChangeIndex, ParsedPatchOp
from session_timeline.schemas.session import (
    CustomToolCallEvent,
    FileChangeEvent,
    FunctionCallEvent,
    LocalShellCallEvent,
    ResponseItem,
)
from session_timeline.services.normalize import loads_or_text
from session_timeline.services.patch import APPLY_PATCH_COMMAND, extract_apply_patch_text, parse_apply_patch
from session_timeline.services.timeline import call_id, merge_call_outputs

# apply_patch reports touched files as 'A path', 'M path', 'D path'
_OUTPUT_PATH_RE = re.compile(r'^[AMD]\s+(.+)$')

_SCANNED_FIELDS = ('args', 'result', 'content', 'diff', 'command', 'argv', 'input', 'output')


# ==============================================================================
# Detection
# ==============================================================================


def _starts_with_apply_patch(command: Any) -> bool:
    if isinstance(command, list):
        return bool(command) and command[0] == APPLY_PATCH_COMMAND
    if isinstance(command, str):
        return command.lstrip().startswith(APPLY_PATCH_COMMAND)
    return False


def is_apply_patch_call(event: ResponseItem) -> bool:
    """
    True for tool calls that run apply_patch.

    Recognizes a FunctionCall or CustomToolCall named apply_patch, a
    FunctionCall named shell whose command starts with apply_patch, and a
    LocalShellCall whose command (or argv) does.
    """
    match event:
        case FunctionCallEvent(name='apply_patch') | CustomToolCallEvent(toolName='apply_patch'):
            return True
        case FunctionCallEvent(name='shell'):
            args = loads_or_text(event.args) if isinstance(event.args, str) else event.args
            return isinstance(args, dict) and _starts_with_apply_patch(args.get('command'))
        case LocalShellCallEvent():
            argv = event.get_extra_fields().get('argv')
            return _starts_with_apply_patch(argv if argv is not None else event.command)
        case _:
            return False


def contains_apply_patch_anywhere(event: ResponseItem) -> bool:
    """True when 'apply_patch' appears in any string inside the event's payload fields."""
    stack: list[Any] = [getattr(event, name, None) for name in _SCANNED_FIELDS]
    while stack:
        value = stack.pop()
        if isinstance(value, str):
            if APPLY_PATCH_COMMAND in value:
                return True
        elif isinstance(value, dict):
            stack.extend(value.values())
        elif isinstance(value, (list, tuple)):
            stack.extend(value)
    return False


# ==============================================================================
# Index
# ==============================================================================


def _patch_payload(event: ResponseItem) -> Any:
    match event:
        case FunctionCallEvent():
            return event.args
        case CustomToolCallEvent():
            return event.input
        case LocalShellCallEvent():
            argv = event.get_extra_fields().get('argv')
            return argv if argv is not None else event.command
        case _:
            return None


def _output_text(event: ResponseItem) -> str:
    match event:
        case FunctionCallEvent():
            result = event.result
        case CustomToolCallEvent():
            result = event.output
        case LocalShellCallEvent():
            result = event.stdout
        case _:
            result = None

    if result is None:
        return ''
    if isinstance(result, str):
        return result
    if isinstance(result, dict) and isinstance(result.get('output'), str):
        return result['output']
    return json.dumps(result)


def parse_output_paths(text: str) -> list[str]:
    """Paths listed in apply_patch output, in order."""
    paths = []
    for line in text.split('\n'):
        found = _OUTPUT_PATH_RE.match(line.strip())
        if found:
            paths.append(found.group(1).strip())
    return paths


def _op_for_path(ops: list[ParsedPatchOp], path: str) -> ParsedPatchOp | None:
    return next((op for op in ops if path in (op.path, op.newPath)), None)


def analyze_file_changes(events: Iterable[ResponseItem]) -> FileChangeIndex:
    """
    Index the files touched by apply-patch calls.

    Paths come from the call's output when it lists them, otherwise from
    the patch operations. Calls with neither a call id nor an event id
    are skipped. Outputs are folded into their calls first (merge_call_outputs).

    Args:
        events: Timeline events in order

    Returns:
        FileChangeIndex with one synthetic FileChange per (call, path)
    """
    by_path: dict[str, list[FileChangeEvent]] = {}
    call_files: dict[str, list[str]] = {}

    for event in merge_call_outputs(list(events)):
        if not is_apply_patch_call(event):
            continue
        key = call_id(event) or event.id
        if not key:
            continue

        patch_text = extract_apply_patch_text(_patch_payload(event))
        ops = parse_apply_patch(patch_text) if patch_text is not None else []

        paths = parse_output_paths(_output_text(event))
        if not paths:
            paths = [op.newPath or op.path for op in ops]
        paths = list(dict.fromkeys(paths))
        call_files[key] = paths

        for path in paths:
            op = _op_for_path(ops, path)
            fields: dict[str, Any] = {'type': 'FileChange', 'path': path, 'id': key}
            if op is not None:
                fields['diff'] = op.unifiedDiff
            if event.at is not None:
                fields['at'] = event.at
            if event.index is not None:
                fields['index'] = event.index
            by_path.setdefault(path, []).append(FileChangeEvent(**fields))

    return FileChangeIndex(by_path=by_path, call_files=call_files)
