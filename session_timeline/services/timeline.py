"""
Helpers for consumers that hold a parsed timeline.

The stream emits one event per line, so a tool call and its output arrive as
two events sharing a call id. merge_call_outputs folds them together for
display; event_key gives each event a stable key.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from session_timeline.schemas.session import (
    CustomToolCallEvent,
    FunctionCallEvent,
    LocalShellCallEvent,
    ResponseItem,
)
from session_timeline.services.normalize import shell_output_fields

_SHELL_OUTPUT_FIELDS = ('stdout', 'stderr', 'exitCode', 'durationMs')


def event_key(event: ResponseItem, position: int) -> str:
    """Stable key for an event: its id, else its index, else its position in the list."""
    if event.id:
        return event.id
    if event.index is not None:
        return f'idx-{event.index}'
    return f'idx-{position}'


def call_id(event: ResponseItem) -> str | None:
    """The call id a tool event was logged with, if any."""
    value = event.get_extra_fields().get('callId')
    return value if isinstance(value, str) and value else None


# ==============================================================================
# Call/Output Pairing
# ==============================================================================


def _is_call(event: ResponseItem) -> bool:
    match event:
        case FunctionCallEvent():
            return 'args' in event.model_fields_set
        case LocalShellCallEvent():
            return bool(event.command)
        case CustomToolCallEvent():
            return 'input' in event.model_fields_set
        case _:
            return False


def _output_fields(event: ResponseItem) -> dict[str, Any] | None:
    """Output fields of an output-only record, or None when the event is not one."""
    fields = event.model_fields_set
    match event:
        case FunctionCallEvent() if 'args' not in fields and 'result' in fields:
            return {'result': event.result, 'durationMs': event.durationMs}
        case LocalShellCallEvent() if not event.command and fields.intersection(_SHELL_OUTPUT_FIELDS):
            return {name: getattr(event, name) for name in _SHELL_OUTPUT_FIELDS if name in fields}
        case CustomToolCallEvent() if 'input' not in fields and 'output' in fields:
            return {'result': event.output}
        case _:
            return None


def _call_update(call: ResponseItem, output: dict[str, Any]) -> dict[str, Any]:
    """Map output fields onto the fields of the call they belong to."""
    match call:
        case LocalShellCallEvent():
            if 'result' not in output:
                return output
            result = output['result']
            return shell_output_fields(result if isinstance(result, Mapping) else {'stdout': result})
        case FunctionCallEvent():
            if 'result' in output:
                return {key: value for key, value in output.items() if value is not None}
            return {'result': output}
        case CustomToolCallEvent():
            return {'output': output.get('result', output)}
        case _:
            return {}


def merge_call_outputs(events: Sequence[ResponseItem]) -> list[ResponseItem]:
    """
    Fold output records into the earlier call with the same call id.

    The output of a shell call is often logged as a generic tool result;
    its decoded result is mapped onto the LocalShellCall output fields.
    Unpaired outputs stay where they are.

    Args:
        events: Timeline in stream order (not modified)

    Returns:
        New list with paired outputs removed and their calls updated
    """
    merged: list[ResponseItem] = []
    open_calls: dict[str, int] = {}

    for event in events:
        cid = call_id(event)
        if cid is not None:
            if _is_call(event):
                open_calls[cid] = len(merged)
            else:
                output = _output_fields(event)
                position = open_calls.get(cid)
                if output is not None and position is not None:
                    call = merged[position]
                    merged[position] = call.model_copy(update=_call_update(call, output))
                    continue
        merged.append(event)

    return merged
