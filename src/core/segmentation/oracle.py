"""Boundary oracle: line, word, and grapheme break positions for decoded text.

Offsets index the decoded ``str`` (code points). The engine only ever asks
for boundaries inside a single line or a read buffer, so implementations must
be stateless and safe to pickle into worker processes.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, NamedTuple

import regex

# Unicode newline sequences (UTR #13): LF, CR, CRLF, NEL, FF, LS, PS.
NEWLINES = frozenset({"\n", "\r", "\r\n", "\u0085", "\u000c", "\u2028", "\u2029"})

_LINE_BREAK_RE = regex.compile(r"\r\n|[\n\r\u0085\u000c\u2028\u2029]")
_GRAPHEME_RE = regex.compile(r"\X")
# WORD flag switches \b to the Unicode default word boundaries (UAX #29).
_WORD_BOUNDARY_RE = regex.compile(r"\b", flags=regex.WORD | regex.V1)


class WordToken(NamedTuple):
    start: int
    end: int
    is_word_like: bool


class BoundaryOracle(ABC):
    """Pure segmentation capability injected into the splitter and counter."""

    @abstractmethod
    def line_breaks(self, text: str) -> List[int]:
        """Offsets just past each line terminator in ``text``."""

    @abstractmethod
    def word_boundaries(self, text: str) -> List[WordToken]:
        """Tokens covering ``text`` between consecutive word boundaries."""

    @abstractmethod
    def grapheme_boundaries(self, text: str) -> List[int]:
        """Start offset of every extended grapheme cluster."""


class UnicodeBoundaryOracle(BoundaryOracle):
    """Oracle backed by the ``regex`` module's Unicode segmentation support."""

    def line_breaks(self, text: str) -> List[int]:
        return [match.end() for match in _LINE_BREAK_RE.finditer(text)]

    def word_boundaries(self, text: str) -> List[WordToken]:
        if not text:
            return []
        cuts = {0, len(text)}
        cuts.update(match.start() for match in _WORD_BOUNDARY_RE.finditer(text))
        ordered = sorted(cuts)
        return [
            WordToken(start, end, _is_word_like(text[start:end]))
            for start, end in zip(ordered, ordered[1:])
        ]

    def grapheme_boundaries(self, text: str) -> List[int]:
        return [match.start() for match in _GRAPHEME_RE.finditer(text)]


def _is_word_like(token: str) -> bool:
    return any(char.isalnum() for char in token)
