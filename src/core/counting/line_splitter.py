"""Lazy splitting of a UTF-8 byte stream into line records."""
from __future__ import annotations

import codecs
from typing import BinaryIO, Iterator, List, Optional

from common.errors import StreamReadError
from common.models import LineRecord
from core.segmentation import BoundaryOracle

DEFAULT_READ_BLOCK_BYTES = 65_536


class LineSplitter:
    """Reads fixed-size blocks and yields whole lines, terminators included.

    The splitter owns the stream cursor and can be iterated once. A CR at the
    end of a block is held back until the next block shows whether it is the
    first half of a CRLF.
    """

    def __init__(
        self,
        handle: BinaryIO,
        oracle: BoundaryOracle,
        *,
        read_block_bytes: int = DEFAULT_READ_BLOCK_BYTES,
        errors: str = "strict",
        source: Optional[str] = None,
    ) -> None:
        self.handle = handle
        self.oracle = oracle
        self.read_block_bytes = max(1, read_block_bytes)
        self.errors = errors
        self.source = source
        self.lines_emitted = 0
        self._started = False

    def __iter__(self) -> Iterator[LineRecord]:
        if self._started:
            raise RuntimeError("LineSplitter can only be iterated once")
        self._started = True
        return self._iter_lines()

    def _iter_lines(self) -> Iterator[LineRecord]:
        decoder = codecs.getincrementaldecoder("utf-8")(errors=self.errors)
        pending = ""
        scan_from = 0
        while True:
            block = self._read_block()
            at_eof = not block
            pending += decoder.decode(block, final=at_eof)

            consumed = 0
            for cut in self._breaks(pending, scan_from):
                if not at_eof and cut == len(pending) and pending.endswith("\r"):
                    # LF may arrive with the next block
                    break
                yield self._record(pending[consumed:cut], had_terminator=True)
                consumed = cut
            pending = pending[consumed:]
            # rescan only new text, plus a held-back CR
            scan_from = len(pending) - 1 if pending.endswith("\r") else len(pending)

            if at_eof:
                break

        if pending:
            yield self._record(pending, had_terminator=False)

    def _breaks(self, text: str, start: int) -> List[int]:
        start = max(0, start)
        return [start + offset for offset in self.oracle.line_breaks(text[start:])]

    def _read_block(self) -> bytes:
        try:
            return self.handle.read(self.read_block_bytes)
        except OSError as exc:
            raise StreamReadError(
                f"Failed reading {self.source or 'input stream'} after "
                f"{self.lines_emitted} line(s): {exc}",
                context={"source": self.source, "lines_emitted": self.lines_emitted},
            ) from exc

    def _record(self, text: str, *, had_terminator: bool) -> LineRecord:
        self.lines_emitted += 1
        return LineRecord(text=text, had_terminator=had_terminator, number=self.lines_emitted)
