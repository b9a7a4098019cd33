from __future__ import annotations

from common.models import ALL_COUNTERS, LineRecord, ResourceLimits
from core.counting import Chunker, ParallelDispatcher, UnitCounter, count_chunk
from core.counting import dispatcher as dispatcher_module
from core.resources import ResourceManager
from core.segmentation import UnicodeBoundaryOracle

TEXT_LINES = ["alpha beta\n", "gamma\r\n", "\n", "delta epsilon zeta\n", "eta"]


def make_chunks(size: int):
    records = [
        LineRecord(text=text, had_terminator=text.endswith("\n"), number=n)
        for n, text in enumerate(TEXT_LINES, start=1)
    ]
    return list(Chunker(size).chunk(records))


def make_counter() -> UnitCounter:
    return UnitCounter(ALL_COUNTERS, UnicodeBoundaryOracle())


def flatten(batches):
    return sorted(
        (item for batch in batches for item in batch),
        key=lambda item: (item.chunk_index, item.offset),
    )


def test_count_chunk_tags_every_line() -> None:
    chunk = make_chunks(2)[1]
    results = count_chunk((make_counter(), chunk))
    assert [(r.chunk_index, r.offset, r.line_number) for r in results] == [(1, 0, 3), (1, 1, 4)]
    assert results[1].counts.words == 3


def test_inline_dispatch_with_one_worker() -> None:
    dispatcher = ParallelDispatcher(make_counter(), max_workers=1)
    assert dispatcher.workers == 1
    batches = list(dispatcher.dispatch(make_chunks(2)))
    assert len(batches) == 3
    assert [item.line_number for item in flatten(batches)] == [1, 2, 3, 4, 5]


def test_process_pool_matches_inline_results() -> None:
    inline = flatten(ParallelDispatcher(make_counter(), max_workers=1).dispatch(make_chunks(1)))
    pooled = flatten(ParallelDispatcher(make_counter(), max_workers=2).dispatch(make_chunks(1)))
    assert pooled == inline


def test_pool_releases_reserved_workers() -> None:
    manager = ResourceManager(ResourceLimits(max_workers=2))
    dispatcher = ParallelDispatcher(make_counter(), max_workers=8, resource_manager=manager)
    assert dispatcher.workers == 2
    list(dispatcher.dispatch(make_chunks(2)))
    assert manager.available_workers() == 2


def test_empty_chunk_stream() -> None:
    assert list(ParallelDispatcher(make_counter(), max_workers=2).dispatch([])) == []


def test_single_chunk_skips_process_pool(monkeypatch) -> None:
    def no_pool(*args, **kwargs):
        raise AssertionError("process pool started for a single chunk")

    monkeypatch.setattr(dispatcher_module, "ProcessPoolExecutor", no_pool)
    manager = ResourceManager(ResourceLimits(max_workers=4))
    dispatcher = ParallelDispatcher(make_counter(), max_workers=4, resource_manager=manager)
    batches = list(dispatcher.dispatch(make_chunks(10)))
    assert len(batches) == 1
    assert [item.line_number for item in flatten(batches)] == [1, 2, 3, 4, 5]
    assert manager.available_workers() == 4
