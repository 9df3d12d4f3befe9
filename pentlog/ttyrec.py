"""Reading of ttyrec recordings: 12-byte little-endian headers followed by data."""

from __future__ import annotations

import io
import struct
from dataclasses import dataclass
from typing import BinaryIO, Iterator

_HEADER = struct.Struct("<III")


@dataclass(frozen=True)
class TtyrecFrame:
    sec: int
    usec: int
    data: bytes

    @property
    def length(self) -> int:
        return len(self.data)


def _read_exactly(stream: BinaryIO, size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def read_frame(stream: BinaryIO) -> TtyrecFrame | None:
    """Read the next frame, or return None at the end of the recording.

    A frame cut short after some of its bytes were read raises EOFError.
    """
    header = _read_exactly(stream, _HEADER.size)
    if not header:
        return None
    if len(header) < _HEADER.size:
        raise EOFError("unexpected end of ttyrec header")
    sec, usec, length = _HEADER.unpack(header)
    data = _read_exactly(stream, length)
    if length and not data:
        return None
    if len(data) < length:
        raise EOFError("unexpected end of ttyrec frame")
    return TtyrecFrame(sec, usec, data)


def iter_frames(stream: BinaryIO) -> Iterator[TtyrecFrame]:
    """Yield every frame of the recording in *stream*."""
    while (frame := read_frame(stream)) is not None:
        yield frame


class TtyTextReader(io.RawIOBase):
    """A binary stream of the recorded terminal output without frame headers."""

    def __init__(self, stream: BinaryIO) -> None:
        super().__init__()
        self._stream = stream
        self._pending = b""
        self._offset = 0

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        view = memoryview(buffer).cast("B")
        if not view:
            return 0
        while self._offset >= len(self._pending):
            frame = read_frame(self._stream)
            if frame is None:
                return 0
            self._pending, self._offset = frame.data, 0
        count = min(len(view), len(self._pending) - self._offset)
        view[:count] = self._pending[self._offset:self._offset + count]
        self._offset += count
        return count