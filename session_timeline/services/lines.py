"""
Incremental line splitting for session byte streams.

Decodes chunks as they arrive and yields text lines without ever holding the
whole input: at most one decoded chunk plus the unterminated tail of the
previous one (the carry) is in memory at a time.
"""

from __future__ import annotations

import codecs
from collections.abc import Iterable, Iterator
from typing import BinaryIO

DEFAULT_CHUNK_SIZE = 64 * 1024


def read_chunks(handle: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield successive chunks from a binary file object until EOF."""
    while chunk := handle.read(chunk_size):
        yield chunk


def _strip_cr(line: str) -> str:
    return line[:-1] if line.endswith('\r') else line


def iter_text_lines(chunks: Iterable[bytes], encoding: str = 'utf-8') -> Iterator[str]:
    """
    Split a byte stream into text lines.

    Lines are split on '\\n'; one trailing '\\r' is removed from each line so
    CRLF and LF input produce the same lines. The last line is emitted even
    when the input does not end with a newline. Multi-byte characters split
    across chunk boundaries are decoded correctly; undecodable bytes become
    U+FFFD instead of failing.

    The returned iterator is single-pass. Exceptions raised by `chunks`
    propagate to the caller unchanged.

    Args:
        chunks: Byte chunks in input order
        encoding: Text encoding of the stream

    Yields:
        Lines without their terminators
    """
    decoder = codecs.getincrementaldecoder(encoding)(errors='replace')
    carry = ''

    for chunk in chunks:
        parts = (carry + decoder.decode(chunk)).split('\n')
        carry = parts.pop()
        for part in parts:
            yield _strip_cr(part)

    # Flush bytes the decoder held back waiting for the rest of a character
    parts = (carry + decoder.decode(b'', final=True)).split('\n')
    carry = parts.pop()
    for part in parts:
        yield _strip_cr(part)
    if carry:
        yield _strip_cr(carry)
