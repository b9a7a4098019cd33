"""Grouping of line records into ordered, line-aligned chunks."""
from __future__ import annotations

from typing import Iterable, Iterator, List

from common.errors import BackendError, ErrorCode
from common.models import Chunk, LineRecord

DEFAULT_CHUNK_SIZE = 10_000


class Chunker:
    """Emits chunks of at most ``chunk_size`` whole lines.

    A chunk is only emitted once it is full or the line source is exhausted,
    so a slow stream shows no progress until then. One enormous unterminated
    line still becomes a single chunk holding that one line.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size < 1:
            raise BackendError(
                ErrorCode.CONFIG_ERROR,
                f"chunk_size must be greater than zero, got {chunk_size}",
            )
        self.chunk_size = chunk_size
        self.chunks_emitted = 0

    def chunk(self, lines: Iterable[LineRecord]) -> Iterator[Chunk]:
        buffer: List[LineRecord] = []
        for line in lines:
            buffer.append(line)
            if len(buffer) >= self.chunk_size:
                yield self._flush(buffer)
                buffer = []
        if buffer:
            yield self._flush(buffer)

    def _flush(self, buffer: List[LineRecord]) -> Chunk:
        chunk = Chunk(index=self.chunks_emitted, first_line=buffer[0].number, lines=buffer)
        self.chunks_emitted += 1
        return chunk
