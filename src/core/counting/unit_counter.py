"""Per-line counting of lines, words, bytes, graphemes, and code points."""
from __future__ import annotations

from typing import Iterable

from common.models import CounterKind, CountSet, LineRecord
from core.segmentation import BoundaryOracle


class UnitCounter:
    """Pure function of (line, selection, terminator policy).

    Instances are pickled into worker processes, so they hold nothing but the
    selection, the flags, and a stateless oracle.
    """

    def __init__(
        self,
        selection: Iterable[CounterKind],
        oracle: BoundaryOracle,
        *,
        count_final_unterminated_line: bool = False,
        count_trailing_newlines_only: bool = False,
    ) -> None:
        self.selection = frozenset(selection)
        self.oracle = oracle
        self.count_final_unterminated_line = count_final_unterminated_line
        self.count_trailing_newlines_only = count_trailing_newlines_only

    def count(self, record: LineRecord) -> CountSet:
        counts = CountSet()
        text = record.text
        if CounterKind.LINES in self.selection:
            counts.lines = self._line_units(record)
        if CounterKind.WORDS in self.selection:
            counts.words = sum(
                1 for token in self.oracle.word_boundaries(text) if token.is_word_like
            )
        if CounterKind.BYTES in self.selection:
            counts.bytes = len(text.encode("utf-8"))
        if CounterKind.GRAPHEMES in self.selection:
            counts.graphemes = len(self.oracle.grapheme_boundaries(text))
        if CounterKind.CODEPOINTS in self.selection:
            counts.codepoints = len(text)
        return counts

    def _line_units(self, record: LineRecord) -> int:
        if record.had_terminator:
            return 1
        # only the last line of a stream can lack a terminator
        if self.count_trailing_newlines_only:
            return 0
        return 1 if self.count_final_unterminated_line and record.text else 0
