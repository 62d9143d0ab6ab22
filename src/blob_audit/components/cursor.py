"""Positioned byte cursor over a binary file.

Every read is bounds-checked so a short read surfaces as EndOfInputError
instead of a silently truncated value.
"""

from __future__ import annotations

import io
import os
import struct
import zlib
from collections.abc import Iterator
from contextlib import contextmanager
from typing import BinaryIO

from ..core.errors import DecodeError, EndOfInputError

_INT8 = struct.Struct(">b")
_INT16 = struct.Struct(">h")
_INT32 = struct.Struct(">i")
_INT64 = struct.Struct(">q")


class ByteCursor:
    """Big-endian reader over a seekable binary stream.

    Args:
        stream: Seekable binary file object
        limit: Absolute end of readable input (defaults to stream length)

    Invariants:
        - position never exceeds limit
        - a read inside bounded() that crosses the bound raises DecodeError
          (the enclosing structure is malformed), a read crossing limit raises
          EndOfInputError (the input is truncated)
    """

    def __init__(self, stream: BinaryIO, limit: int | None = None):
        self._stream = stream
        if limit is None:
            current = stream.tell()
            limit = stream.seek(0, os.SEEK_END)
            stream.seek(current)
        self.limit = limit
        self._position = stream.tell()
        self._bound: int | None = None
        self._crc: int | None = None

    @classmethod
    def from_bytes(cls, data: bytes) -> ByteCursor:
        return cls(io.BytesIO(data), len(data))

    @property
    def position(self) -> int:
        return self._position

    def remaining(self) -> int:
        return max(0, self.limit - self._position)

    def seek(self, offset: int) -> None:
        self._stream.seek(offset)
        self._position = offset

    def read(self, n: int) -> bytes:
        if n < 0:
            raise DecodeError(f"Negative length {n}", self._position)
        if self._bound is not None and self._position + n > self._bound:
            raise DecodeError(
                f"Read of {n} bytes overruns enclosing structure ending at {self._bound}",
                self._position,
            )
        if self._position + n > self.limit:
            raise EndOfInputError(self._position, n, self.remaining())

        data = self._stream.read(n)
        if len(data) < n:
            raise EndOfInputError(self._position, n, len(data))
        self._position += n
        if self._crc is not None:
            self._crc = zlib.crc32(data, self._crc)
        return data

    def peek(self, n: int) -> bytes:
        """Return up to n bytes without consuming them."""
        data = self._stream.read(min(n, self.remaining()))
        self._stream.seek(self._position)
        return data

    def read_int8(self) -> int:
        return _INT8.unpack(self.read(1))[0]

    def read_int16(self) -> int:
        return _INT16.unpack(self.read(2))[0]

    def read_int32(self) -> int:
        return _INT32.unpack(self.read(4))[0]

    def read_int64(self) -> int:
        return _INT64.unpack(self.read(8))[0]

    def read_string(self) -> str:
        """Read an int32 length-prefixed UTF-8 string."""
        start = self._position
        length = self.read_int32()
        raw = self.read(length)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Invalid UTF-8 string: {e}", start) from e

    @contextmanager
    def bounded(self, end: int) -> Iterator[ByteCursor]:
        """Confine reads to [position, end) for the duration of the block."""
        previous = self._bound
        self._bound = end if previous is None else min(previous, end)
        try:
            yield self
        finally:
            self._bound = previous

    def begin_checksum(self) -> None:
        """Start accumulating a CRC-32 over subsequently read bytes."""
        self._crc = 0

    def end_checksum(self) -> int:
        crc, self._crc = self._crc or 0, None
        return crc
