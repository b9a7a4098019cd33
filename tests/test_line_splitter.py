from __future__ import annotations

import io

import pytest

from common.errors import ErrorCode, StreamReadError
from core.counting import LineSplitter
from core.segmentation import UnicodeBoundaryOracle


def split(payload: bytes, *, block: int = 65_536) -> list[tuple[str, bool, int]]:
    splitter = LineSplitter(io.BytesIO(payload), UnicodeBoundaryOracle(), read_block_bytes=block)
    return [(record.text, record.had_terminator, record.number) for record in splitter]


class FailingReader(io.RawIOBase):
    def __init__(self, payload: bytes) -> None:
        self.payload = payload
        self.calls = 0

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        self.calls += 1
        if self.calls > 1:
            raise OSError("device went away")
        return self.payload


def test_single_unterminated_line() -> None:
    assert split(b"hello") == [("hello", False, 1)]


def test_keeps_terminators_and_numbers_lines() -> None:
    assert split(b"hello\ngoodbye\r\nwindows?") == [
        ("hello\n", True, 1),
        ("goodbye\r\n", True, 2),
        ("windows?", False, 3),
    ]


def test_recognizes_every_unicode_terminator() -> None:
    text = "a\rb\r\nc\u0085d\u000ce\u2028f\u2029g"
    lines = split(text.encode("utf-8"))
    assert [line[0] for line in lines] == [
        "a\r",
        "b\r\n",
        "c\u0085",
        "d\u000c",
        "e\u2028",
        "f\u2029",
        "g",
    ]
    assert [line[1] for line in lines] == [True] * 6 + [False]


def test_crlf_split_across_blocks_stays_one_terminator() -> None:
    assert split(b"ab\r\ncd", block=3) == [("ab\r\n", True, 1), ("cd", False, 2)]
    assert split(b"ab\r\ncd", block=1) == [("ab\r\n", True, 1), ("cd", False, 2)]


def test_carriage_return_at_end_of_stream() -> None:
    assert split(b"ab\r", block=1) == [("ab\r", True, 1)]


def test_multibyte_sequences_split_across_blocks() -> None:
    payload = "héllo\nwörld \U0001F600\n".encode("utf-8")
    assert split(payload, block=1) == [
        ("héllo\n", True, 1),
        ("wörld \U0001F600\n", True, 2),
    ]


def test_blank_lines_are_records() -> None:
    assert split(b"a\n\n\n") == [("a\n", True, 1), ("\n", True, 2), ("\n", True, 3)]


def test_empty_stream_yields_nothing() -> None:
    assert split(b"") == []


def test_iterating_twice_is_rejected() -> None:
    splitter = LineSplitter(io.BytesIO(b"a\n"), UnicodeBoundaryOracle())
    list(splitter)
    with pytest.raises(RuntimeError):
        iter(splitter)


def test_read_failure_raises_stream_read_error() -> None:
    splitter = LineSplitter(FailingReader(b"one\ntwo"), UnicodeBoundaryOracle(), source="flaky.txt")
    lines = iter(splitter)
    assert next(lines).text == "one\n"
    with pytest.raises(StreamReadError) as exc:
        list(lines)
    assert exc.value.code == ErrorCode.IO_ERROR
    assert exc.value.context["source"] == "flaky.txt"
