"""Incremental decoder for files holding one top-level JSON array.

Dump data files can be far larger than memory, so the array is never
materialized. The stream is read in chunks, decoded as UTF-8 incrementally,
and each element is parsed with the stdlib JSON decoder as soon as it is
complete. Text that has already been consumed is dropped from the buffer,
which keeps memory bounded by the largest single element plus one chunk.

The decoder is format-agnostic: callers hand it a raw byte stream or one that
already went through a decompression filter.
"""

from __future__ import annotations

import codecs
import json
import re
import zlib
from gzip import BadGzipFile
from typing import Any, BinaryIO, Iterator

from rdbrestore.core.errors import MalformedInputError

DEFAULT_CHUNK_SIZE = 64 * 1024

_NON_WHITESPACE = re.compile(r"[^ \t\n\r]")
# what may still follow a number that was cut at a chunk boundary
_NUMBER_TAIL = re.compile(r"[0-9.eE+-]*")


class _ArrayScanner:
    """Chunked text buffer with the few primitives the array grammar needs."""

    def __init__(self, stream: BinaryIO, chunk_size: int) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self._stream = stream
        self._chunk_size = chunk_size
        self._utf8 = codecs.getincrementaldecoder("utf-8")()
        self._json = json.JSONDecoder()
        self._buf = ""
        self._pos = 0
        # characters dropped from the front of the buffer so far
        self._dropped = 0
        self._eof = False

    @property
    def offset(self) -> int:
        """Character offset of the cursor from the start of the stream."""
        return self._dropped + self._pos

    def _fill(self, size: int | None = None) -> None:
        """Append the next chunk of decoded text, compacting the buffer first."""
        try:
            chunk = self._stream.read(size or self._chunk_size)
            text = self._utf8.decode(chunk, final=not chunk)
        except UnicodeDecodeError as exc:
            raise MalformedInputError(
                f"invalid UTF-8 near offset {self.offset}: {exc.reason}"
            ) from exc
        except EOFError as exc:
            # compressed stream ended before its end-of-stream marker
            raise MalformedInputError(f"truncated input: {exc}") from exc
        except (zlib.error, BadGzipFile) as exc:
            raise MalformedInputError(f"corrupt compressed input: {exc}") from exc

        if not chunk:
            self._eof = True

        if self._pos:
            self._dropped += self._pos
            self._buf = self._buf[self._pos :]
            self._pos = 0
        self._buf += text

    def peek(self) -> str | None:
        """Skip whitespace and return the next character, or None at end of stream."""
        while True:
            match = _NON_WHITESPACE.search(self._buf, self._pos)
            if match:
                self._pos = match.start()
                return self._buf[self._pos]
            self._pos = len(self._buf)
            if self._eof:
                return None
            self._fill()

    def advance(self) -> None:
        self._pos += 1

    def value(self) -> Any:
        """Decode the JSON value that starts at the cursor."""
        if self.peek() is None:
            raise MalformedInputError(
                f"unexpected end of input at offset {self.offset}, expected a value"
            )

        read_size = self._chunk_size
        while True:
            try:
                value, end = self._json.raw_decode(self._buf, self._pos)
            except json.JSONDecodeError as exc:
                if self._eof:
                    raise MalformedInputError(
                        f"invalid JSON value at offset {self._dropped + exc.pos}: {exc.msg}"
                    ) from exc
                self._fill(read_size)
                read_size *= 2
                continue

            # A number may continue in the next chunk, either right at the
            # buffer end or after a trailing `.`, `e` or sign.
            if not self._eof and (
                end == len(self._buf)
                or (
                    isinstance(value, (int, float))
                    and _NUMBER_TAIL.fullmatch(self._buf, end)
                )
            ):
                self._fill(read_size)
                continue

            self._pos = end
            return value


def iter_json_array(
    stream: BinaryIO,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Iterator[Any]:
    """
    Lazily yield the elements of the top-level JSON array in `stream`.

    The returned generator is forward-only and reads only as much of the
    stream as it needs to produce the next element.

    Args:
        stream: Binary file-like object positioned at the start of the array.
        chunk_size: Number of bytes requested from the stream per read.

    Yields:
        Each decoded element, in file order.

    Raises:
        MalformedInputError: From the pull that meets anything other than a
            well-formed array (bad leading byte, missing separator, premature
            end of stream, invalid element). The generator is finished
            afterwards, so further pulls simply end the sequence.
    """
    scanner = _ArrayScanner(stream, chunk_size)

    first = scanner.peek()
    if first != "[":
        found = "end of input" if first is None else repr(first)
        raise MalformedInputError(f"expected '[' at offset {scanner.offset}, found {found}")
    scanner.advance()

    if scanner.peek() == "]":
        return

    while True:
        yield scanner.value()

        token = scanner.peek()
        if token == "]":
            return
        if token != ",":
            found = "end of input" if token is None else repr(token)
            raise MalformedInputError(
                f"expected ',' or ']' at offset {scanner.offset}, found {found}"
            )
        scanner.advance()
