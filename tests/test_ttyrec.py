import io
import struct

import pytest

from pentlog.ttyrec import TtyrecFrame, TtyTextReader, iter_frames, read_frame


def _frame(data: bytes, sec: int = 1, usec: int = 2) -> bytes:
    return struct.pack("<III", sec, usec, len(data)) + data


def test_header_is_little_endian():
    raw = b"\x01\x00\x00\x00\x02\x00\x00\x00\x02\x00\x00\x00hi"
    assert read_frame(io.BytesIO(raw)) == TtyrecFrame(1, 2, b"hi")


def test_iter_frames_reads_all():
    raw = _frame(b"ls\n", 10, 5) + _frame(b"out\n", 11, 6)
    frames = list(iter_frames(io.BytesIO(raw)))
    assert [f.data for f in frames] == [b"ls\n", b"out\n"]
    assert [(f.sec, f.usec) for f in frames] == [(10, 5), (11, 6)]
    assert frames[1].length == 4


def test_empty_stream_has_no_frames():
    assert read_frame(io.BytesIO(b"")) is None
    assert list(iter_frames(io.BytesIO(b""))) == []


def test_truncated_header_raises():
    with pytest.raises(EOFError):
        read_frame(io.BytesIO(b"\x01\x00\x00"))


def test_truncated_payload_raises():
    with pytest.raises(EOFError):
        read_frame(io.BytesIO(struct.pack("<III", 0, 0, 5) + b"ab"))


def test_text_reader_concatenates_payloads():
    raw = _frame(b"hello ") + _frame(b"") + _frame(b"world\n")
    reader = TtyTextReader(io.BytesIO(raw))
    assert reader.read() == b"hello world\n"


def test_text_reader_small_reads():
    raw = _frame(b"abcdef")
    reader = TtyTextReader(io.BytesIO(raw))
    assert reader.read(4) == b"abcd"
    assert reader.read(4) == b"ef"
    assert reader.read(4) == b""


def test_text_reader_lines_through_buffer():
    raw = _frame(b"one\ntw") + _frame(b"o\nthree\n")
    lines = io.BufferedReader(TtyTextReader(io.BytesIO(raw))).readlines()
    assert lines == [b"one\n", b"two\n", b"three\n"]


def test_text_reader_truncated_raises():
    raw = _frame(b"ok") + struct.pack("<III", 0, 0, 9) + b"x"
    with pytest.raises(EOFError):
        TtyTextReader(io.BytesIO(raw)).read()