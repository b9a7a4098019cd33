"""Counting engine: stream → lines → chunks → partial counts → report."""
from __future__ import annotations

import time
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, Iterator, Optional

from common.config import error_mode_from_policy
from common.errors import StreamReadError
from common.models import Chunk, CountingSettings, FileProgress, Report
from common.progress import ProgressLogger
from core.resources import ResourceManager
from core.segmentation import BoundaryOracle, UnicodeBoundaryOracle
from .chunker import Chunker
from .dispatcher import ParallelDispatcher
from .line_splitter import LineSplitter
from .merger import ResultMerger
from .unit_counter import UnitCounter

ProgressCallback = Optional[Callable[[FileProgress], None]]


class CountingEngine:
    """Counts one input per call; failures are never caught here."""

    def __init__(
        self,
        settings: Optional[CountingSettings] = None,
        *,
        oracle: Optional[BoundaryOracle] = None,
        resource_manager: Optional[ResourceManager] = None,
        progress_log: Optional[Path] = None,
    ) -> None:
        self.settings = settings or CountingSettings()
        self.oracle = oracle or UnicodeBoundaryOracle()
        self.resource_manager = resource_manager or ResourceManager()
        self.errors = error_mode_from_policy(self.settings.error_policy)
        self.progress_logger = ProgressLogger(progress_log) if progress_log else None

    def count_stream(
        self,
        handle: BinaryIO,
        *,
        source: str = "-",
        progress_callback: ProgressCallback = None,
    ) -> Report:
        settings = self.settings
        splitter = LineSplitter(
            handle,
            self.oracle,
            read_block_bytes=settings.read_block_bytes,
            errors=self.errors,
            source=source,
        )
        chunker = Chunker(settings.chunk_size)
        counter = UnitCounter(
            settings.counters,
            self.oracle,
            count_final_unterminated_line=settings.count_final_unterminated_line,
            count_trailing_newlines_only=settings.count_trailing_newlines_only,
        )
        dispatcher = ParallelDispatcher(
            counter,
            max_workers=settings.max_workers,
            resource_manager=self.resource_manager,
        )
        merger = ResultMerger(settings.counters, settings.mode)

        start = time.perf_counter()
        chunks_merged = 0
        for batch in dispatcher.dispatch(_registered(chunker.chunk(splitter), merger)):
            merger.add_all(batch)
            chunks_merged += 1
            self._emit_progress(
                source, merger.processed_lines, chunks_merged, "counting", start, progress_callback
            )
        report = merger.finish()
        self._emit_progress(
            source, merger.processed_lines, chunks_merged, "count-complete", start, progress_callback
        )
        return report

    def count_path(self, path: Path, *, progress_callback: ProgressCallback = None) -> Report:
        try:
            handle = path.open("rb")
        except OSError as exc:
            raise StreamReadError(f"Cannot open {path}: {exc}", context={"source": str(path)}) from exc
        with handle:
            return self.count_stream(handle, source=str(path), progress_callback=progress_callback)

    def _emit_progress(
        self,
        source: str,
        processed_lines: int,
        chunks_merged: int,
        phase: str,
        start: float,
        progress_callback: ProgressCallback,
    ) -> None:
        if not progress_callback and not self.progress_logger:
            return
        elapsed = time.perf_counter() - start
        progress = FileProgress(
            source=source,
            processed_lines=processed_lines,
            chunks_merged=chunks_merged,
            current_phase=phase,
            elapsed_seconds=elapsed,
            lines_per_second=processed_lines / elapsed if elapsed else None,
        )
        if progress_callback:
            progress_callback(progress)
        if self.progress_logger:
            self.progress_logger.emit(progress)


def _registered(chunks: Iterable[Chunk], merger: ResultMerger) -> Iterator[Chunk]:
    for chunk in chunks:
        merger.expect(chunk)
        yield chunk
