# === NAVMAP v1 ===
# {
#   "module": "BinaryStore.streams",
#   "purpose": "Payload stream that owns the statement and connection that produced it",
#   "sections": [
#     {"id": "lobstream", "name": "LobStream", "anchor": "class-lobstream", "kind": "class"},
#     {"id": "as-payload-stream", "name": "as_payload_stream", "anchor": "function-as-payload-stream", "kind": "function"},
#     {"id": "streamingreader", "name": "StreamingReader", "anchor": "class-streamingreader", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Streaming access to a fetched payload.

:meth:`BinaryStore.store.ContentStore.read` hands its caller a
:class:`StreamingReader` instead of bytes. The reader owns the cursor and the
connection the payload came from, so both stay open until the caller is done
and are released by :meth:`StreamingReader.close` in a fixed order:

1. the payload stream itself,
2. the statement (cursor),
3. the connection.

Release failures are logged at debug level and never raised; whatever the
caller was doing with the data (or the exception it is already handling)
stays the visible outcome.
"""

from __future__ import annotations

import contextlib
import io
import logging
from typing import Any, Optional

from .resources import close_quietly

logger = logging.getLogger(__name__)

__all__ = ["LobStream", "StreamingReader", "as_payload_stream", "is_lob"]


def is_lob(value: Any) -> bool:
    """True for driver LOB locators (``oracledb``/``cx_Oracle`` ``LOB``).

    Their ``read(offset=1, amount=None)`` takes a 1-based offset rather than
    a byte count, so they cannot be read as files.
    """
    return callable(getattr(value, "getchunksize", None)) and callable(
        getattr(value, "size", None)
    )


class LobStream(io.RawIOBase):
    """Seekable file view over a LOB locator, reading through offsets."""

    def __init__(self, lob: Any) -> None:
        super().__init__()
        self._lob = lob
        self._position = 0
        self._length: Optional[int] = None

    def _size(self) -> int:
        if self._length is None:
            self._length = int(self._lob.size())
        return self._length

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        count = min(len(buffer), self._size() - self._position)
        if count <= 0:
            return 0
        data = self._lob.read(self._position + 1, count)
        buffer[: len(data)] = data
        self._position += len(data)
        return len(data)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            base = 0
        elif whence == io.SEEK_CUR:
            base = self._position
        elif whence == io.SEEK_END:
            base = self._size()
        else:
            raise ValueError(f"Invalid whence: {whence}")
        self._position = max(0, base + offset)
        return self._position

    def tell(self) -> int:
        return self._position


def as_payload_stream(value: Any) -> Any:
    """Turn a fetched payload column value into a readable binary stream.

    Some drivers return ``None`` instead of an empty value for a zero-length
    blob; that becomes an empty stream rather than an error. LOB locators
    are wrapped in a :class:`LobStream`.
    """
    if value is None:
        return io.BytesIO(b"")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(value))
    if is_lob(value):
        return LobStream(value)
    if hasattr(value, "read"):
        return value
    raise TypeError(f"Unsupported payload value of type {type(value).__name__}")


class StreamingReader(io.BufferedIOBase):
    """Binary stream over a payload that releases its database resources on close.

    Args:
        stream: Payload value or stream (see :func:`as_payload_stream`).
        statement: Statement that fetched the payload; closed after the stream.
        connection: Connection that ran the statement; closed last.
    """

    def __init__(self, stream: Any, statement: Any, connection: Any) -> None:
        super().__init__()
        self._resources = contextlib.ExitStack()
        self._stream = as_payload_stream(stream)
        self._mark: Optional[int] = None
        # ExitStack unwinds in reverse: stream, then statement, then connection.
        self._resources.callback(close_quietly, connection, "connection")
        self._resources.callback(close_quietly, statement, "statement")
        self._resources.callback(close_quietly, self._stream, "payload stream")

    # -- reading ---------------------------------------------------------

    def readable(self) -> bool:
        return True

    def read(self, size: Optional[int] = -1) -> bytes:
        self._check_open()
        if size is None:
            size = -1
        return self._stream.read(size)

    def read1(self, size: int = -1) -> bytes:
        self._check_open()
        read1 = getattr(self._stream, "read1", None)
        if read1 is not None:
            return read1(size)
        return self._stream.read(size)

    def readinto(self, buffer: Any) -> int:
        self._check_open()
        readinto = getattr(self._stream, "readinto", None)
        if readinto is not None:
            return readinto(buffer)
        data = self._stream.read(len(buffer))
        buffer[: len(data)] = data
        return len(data)

    def skip(self, count: int) -> int:
        """Advance up to ``count`` bytes and return how many were skipped."""
        self._check_open()
        if count <= 0:
            return 0
        if self.seekable():
            start = self._stream.tell()
            end = self._stream.seek(0, io.SEEK_END)
            target = min(start + count, end)
            self._stream.seek(target)
            return target - start
        skipped = 0
        while skipped < count:
            chunk = self._stream.read(min(count - skipped, io.DEFAULT_BUFFER_SIZE))
            if not chunk:
                break
            skipped += len(chunk)
        return skipped

    # -- positioning -----------------------------------------------------

    def seekable(self) -> bool:
        seekable = getattr(self._stream, "seekable", None)
        return bool(seekable()) if seekable is not None else False

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        self._check_open()
        return self._stream.seek(offset, whence)

    def tell(self) -> int:
        self._check_open()
        return self._stream.tell()

    def mark(self) -> int:
        """Remember the current position for :meth:`reset`."""
        self._mark = self.tell()
        return self._mark

    def reset(self) -> int:
        """Return to the position saved by :meth:`mark`."""
        if self._mark is None:
            raise OSError("reset() called without mark()")
        return self.seek(self._mark)

    # -- lifecycle -------------------------------------------------------

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._resources.close()
        finally:
            super().close()

    def _check_open(self) -> None:
        if self.closed:
            raise ValueError("I/O operation on closed payload stream")

    def __repr__(self) -> str:
        return f"StreamingReader(closed={self.closed})"
