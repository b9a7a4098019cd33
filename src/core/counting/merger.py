"""Reduction of per-line partial results into a report."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List

from common.errors import InvariantViolation
from common.models import Chunk, CounterKind, CountSet, LineCount, PartialResult, Report, ReportMode


@dataclass(slots=True)
class _ChunkLedger:
    first_line: int
    received: bytearray
    remaining: int


class ResultMerger:
    """Collects partial results in any arrival order.

    Every chunk must be registered with :meth:`expect` before its results
    arrive. Totals are a plain sum, so arrival order and chunk size cannot
    change them; line mode keeps the partials and sorts them on finish.
    """

    def __init__(self, selection: Iterable[CounterKind], mode: ReportMode = ReportMode.TOTAL) -> None:
        self.selection = frozenset(selection)
        self.mode = mode
        self.total = CountSet.zero(self.selection)
        self.processed_lines = 0
        self._ledgers: Dict[int, _ChunkLedger] = {}
        self._rows: List[PartialResult] = []

    def expect(self, chunk: Chunk) -> None:
        if chunk.index in self._ledgers:
            raise InvariantViolation(
                f"Chunk {chunk.index} registered twice",
                context={"chunk_index": chunk.index},
            )
        self._ledgers[chunk.index] = _ChunkLedger(
            first_line=chunk.first_line,
            received=bytearray(len(chunk)),
            remaining=len(chunk),
        )

    def add(self, partial: PartialResult) -> None:
        ledger = self._ledgers.get(partial.chunk_index)
        if ledger is None:
            raise InvariantViolation(
                f"Result for unknown chunk {partial.chunk_index}",
                context={"chunk_index": partial.chunk_index, "line_number": partial.line_number},
            )
        if not 0 <= partial.offset < len(ledger.received):
            raise InvariantViolation(
                f"Offset {partial.offset} outside chunk {partial.chunk_index}",
                context={"chunk_index": partial.chunk_index, "offset": partial.offset},
            )
        if ledger.received[partial.offset]:
            raise InvariantViolation(
                f"Duplicate result for line {partial.line_number}",
                context={"chunk_index": partial.chunk_index, "offset": partial.offset},
            )
        if partial.line_number != ledger.first_line + partial.offset:
            raise InvariantViolation(
                f"Line {partial.line_number} does not match chunk {partial.chunk_index} "
                f"offset {partial.offset}",
                context={"chunk_index": partial.chunk_index, "offset": partial.offset},
            )
        ledger.received[partial.offset] = 1
        ledger.remaining -= 1
        if ledger.remaining == 0 and self.mode is ReportMode.TOTAL:
            # nothing left to check for this chunk; keep only its tag
            ledger.received = bytearray()

        self.total = self.total + partial.counts
        self.processed_lines += 1
        if self.mode is ReportMode.LINE:
            self._rows.append(partial)

    def add_all(self, partials: Iterable[PartialResult]) -> None:
        for partial in partials:
            self.add(partial)

    def finish(self) -> Report:
        incomplete = sorted(index for index, ledger in self._ledgers.items() if ledger.remaining)
        if incomplete:
            raise InvariantViolation(
                f"Missing results for chunk(s) {incomplete}",
                context={"chunks": incomplete},
            )
        if self.mode is ReportMode.TOTAL:
            return Report(mode=self.mode, total=self.total)

        self._rows.sort(key=lambda item: (item.chunk_index, item.offset))
        lines = [LineCount(line_number=row.line_number, counts=row.counts) for row in self._rows]
        return Report(mode=self.mode, total=self.total, lines=lines)
