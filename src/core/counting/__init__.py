"""Chunked parallel counting engine."""

from .chunker import Chunker
from .dispatcher import ParallelDispatcher, count_chunk
from .engine import CountingEngine
from .line_splitter import LineSplitter
from .merger import ResultMerger
from .unit_counter import UnitCounter

__all__ = [
    "Chunker",
    "CountingEngine",
    "LineSplitter",
    "ParallelDispatcher",
    "ResultMerger",
    "UnitCounter",
    "count_chunk",
]
