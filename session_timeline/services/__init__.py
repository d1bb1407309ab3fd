"""Service layer for session parsing and diff reconstruction."""

from session_timeline.services.diff import (
    analyze_diff,
    analyze_text,
    is_too_large,
    parse_unified_diff_to_sides,
    safe_truncate,
)
from session_timeline.services.file_changes import (
    analyze_file_changes,
    contains_apply_patch_anywhere,
    is_apply_patch_call,
)
from session_timeline.services.parser import SessionParserService
from session_timeline.services.patch import extract_apply_patch_text, parse_apply_patch
from session_timeline.services.streaming import SessionStream, collect_items, parse_session_to_arrays
from session_timeline.services.timeline import event_key, merge_call_outputs
from session_timeline.services.validators import parse_response_item_line, parse_session_meta_line

__all__ = [
    'SessionParserService',
    'SessionStream',
    'collect_items',
    'parse_session_to_arrays',
    'parse_session_meta_line',
    'parse_response_item_line',
    'parse_apply_patch',
    'extract_apply_patch_text',
    'parse_unified_diff_to_sides',
    'analyze_text',
    'analyze_diff',
    'is_too_large',
    'safe_truncate',
    'analyze_file_changes',
    'contains_apply_patch_anywhere',
    'is_apply_patch_call',
    'event_key',
    'merge_call_outputs',
]
