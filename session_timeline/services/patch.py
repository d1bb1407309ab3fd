"""
Apply-patch envelope parsing.

The envelope format wraps one or more file operations:

    *** Begin Patch
    *** Add File: path/new.txt
    +line one
    *** Update File: path/old.txt
    *** Move to: path/renamed.txt
    @@ def f():
    -    return 1
    +    return 2
    *** Delete File: path/gone.txt
    *** End Patch

Each operation is turned into a minimal unified diff so the diff splitter
can rebuild both sides. Envelopes reach us wrapped in tool-call payloads of
no fixed shape, so extraction searches the whole payload.
"""

from __future__ import annotations

import json
import re
from typing import Any

import pydantic

from session_timeline.schemas.operations import ParsedPatchOp

BEGIN_MARKER = '*** Begin Patch'
END_MARKER = '*** End Patch'
APPLY_PATCH_COMMAND = 'apply_patch'

_ADD_HEADER = '*** Add File: '
_DELETE_HEADER = '*** Delete File: '
_UPDATE_HEADER = '*** Update File: '
_MOVE_HEADER = '*** Move to: '
_END_OF_FILE = '*** End of File'
_OPERATION_PREFIX = '*** '

_PLACEHOLDER_HUNK = '@@ -1,1 +1,1 @@'
_DIFF_LINE_PREFIXES = ('@@', ' ', '+', '-', '\\ No newline')

# apply_patch <<'EOF' ... EOF (quotes optional, '<<-' allowed); end marker alone on its line
_HEREDOC_RE = re.compile(
    r"""apply_patch\s+<<-?\s*(?P<quote>['"]?)(?P<marker>[A-Za-z_][A-Za-z0-9_]*)(?P=quote)[^\n]*\n"""
    r"""(?P<body>.*?)^[ \t]*(?P=marker)[ \t]*$""",
    re.DOTALL | re.MULTILINE,
)


# ==============================================================================
# Envelope Parsing
# ==============================================================================


def _is_operation_header(line: str) -> bool:
    return line.startswith(_OPERATION_PREFIX) and not line.startswith(_END_OF_FILE)


def parse_apply_patch(patch_text: str) -> list[ParsedPatchOp]:
    """
    Parse an apply-patch envelope into file-level operations.

    Lines outside any operation (Begin/End markers, stray text) are ignored.
    Never raises; malformed input yields fewer or emptier operations.

    Args:
        patch_text: Envelope text, LF or CRLF

    Returns:
        Operations in envelope order
    """
    lines = patch_text.replace('\r\n', '\n').split('\n')
    ops: list[ParsedPatchOp] = []
    i = 0

    while i < len(lines):
        line = lines[i]

        if line.startswith(_ADD_HEADER):
            path = line.removeprefix(_ADD_HEADER).strip()
            i += 1
            added: list[str] = []
            while i < len(lines) and not _is_operation_header(lines[i]) and not lines[i].startswith('@@'):
                if lines[i].startswith('+'):
                    added.append(lines[i][1:])
                i += 1
            unified = [
                '--- /dev/null',
                f'+++ {path}',
                f'@@ -0,0 +1,{max(1, len(added))} @@',
                *(f'+{text}' for text in added),
            ]
            ops.append(ParsedPatchOp(op='add', path=path, unifiedDiff='\n'.join(unified)))
            continue

        if line.startswith(_DELETE_HEADER):
            path = line.removeprefix(_DELETE_HEADER).strip()
            i += 1
            # The envelope carries no content for deleted files
            unified = [f'--- {path}', '+++ /dev/null', '@@ -1,1 +0,0 @@', '-']
            ops.append(ParsedPatchOp(op='delete', path=path, unifiedDiff='\n'.join(unified)))
            continue

        if line.startswith(_UPDATE_HEADER):
            path = line.removeprefix(_UPDATE_HEADER).strip()
            i += 1
            new_path: str | None = None
            if i < len(lines) and lines[i].startswith(_MOVE_HEADER):
                new_path = lines[i].removeprefix(_MOVE_HEADER).strip()
                i += 1

            hunk_lines: list[str] = []
            while i < len(lines) and not _is_operation_header(lines[i]):
                if lines[i].startswith(_DIFF_LINE_PREFIXES):
                    hunk_lines.append(lines[i])
                i += 1
            if not any(hunk.startswith('@@') for hunk in hunk_lines):
                hunk_lines.insert(0, _PLACEHOLDER_HUNK)

            unified = [f'--- {path}', f'+++ {new_path or path}', *hunk_lines]
            ops.append(ParsedPatchOp(op='update', path=path, newPath=new_path, unifiedDiff='\n'.join(unified)))
            continue

        i += 1

    return ops


# ==============================================================================
# Envelope Extraction
# ==============================================================================


def _envelope_slice(text: str) -> str:
    """Text from the Begin marker through the end of the End marker line (or to the end)."""
    start = text.index(BEGIN_MARKER)
    end = text.find(END_MARKER, start)
    if end == -1:
        return text[start:]
    return text[start : end + len(END_MARKER)]


def _from_heredoc(text: str) -> str | None:
    for match in _HEREDOC_RE.finditer(text):
        body = match.group('body')
        if BEGIN_MARKER in body:
            return _envelope_slice(body)
    return None


def _decode_json_text(text: str) -> Any:
    stripped = text.strip()
    if not stripped.startswith(('{', '[', '"')):
        return None
    try:
        return json.loads(stripped)
    except (ValueError, RecursionError):
        return None


def _apply_patch_argv(value: list[Any] | tuple[Any, ...]) -> str | None:
    if len(value) >= 2 and value[0] == APPLY_PATCH_COMMAND and isinstance(value[1], str):
        return value[1]
    return None


def extract_apply_patch_text(payload: Any) -> str | None:
    """
    Find apply-patch envelope text anywhere inside a tool-call payload.

    Searches depth-first with an explicit stack, so nesting depth does not
    grow the Python stack, and tracks visited containers by identity, so
    cyclic or shared structures terminate. Recognized forms, in order of
    precedence at each node:

    - An argument vector ['apply_patch', <patch text>], including the
      {command: [...]} arguments object that carries one
    - A string holding JSON (decoded and searched in turn)
    - A shell here-document: apply_patch <<'EOF' ... EOF
    - Any other string containing '*** Begin Patch'

    Args:
        payload: Arbitrary nested dicts/lists/strings, or a pydantic model

    Returns:
        The patch text, or None when no envelope marker exists anywhere
    """
    stack: list[Any] = [payload]
    visited: set[int] = set()

    while stack:
        node = stack.pop()

        if isinstance(node, str):
            if BEGIN_MARKER not in node:
                continue
            decoded = _decode_json_text(node)
            if decoded is not None and not isinstance(decoded, str):
                stack.append(decoded)
                continue
            if isinstance(decoded, str):
                node = decoded
            return _from_heredoc(node) or _envelope_slice(node)

        if isinstance(node, pydantic.BaseModel):
            node = node.model_dump(exclude_unset=True)

        if not isinstance(node, (dict, list, tuple)):
            continue
        if id(node) in visited:
            continue
        visited.add(id(node))

        if isinstance(node, dict):
            children = list(node.values())
        else:
            patch = _apply_patch_argv(node)
            if patch is not None:
                return patch
            children = list(node)
        # Reverse so the first child is searched first
        stack.extend(reversed(children))

    return None


def parse_patch_payload(payload: Any) -> list[ParsedPatchOp]:
    """Extract and parse the envelope carried by a payload; empty when there is none."""
    patch_text = extract_apply_patch_text(payload)
    if patch_text is None:
        return []
    return parse_apply_patch(patch_text)
