"""Data-parallel map of the unit counter over chunks."""
from __future__ import annotations

from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, wait
from itertools import chain, islice
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from common.models import Chunk, PartialResult
from core.resources import ResourceManager
from .unit_counter import UnitCounter

ChunkTask = Tuple[UnitCounter, Chunk]


def count_chunk(task: ChunkTask) -> List[PartialResult]:
    """Worker entry: count every line of one chunk."""

    counter, chunk = task
    return [
        PartialResult(
            chunk_index=chunk.index,
            offset=offset,
            line_number=record.number,
            counts=counter.count(record),
        )
        for offset, record in enumerate(chunk.lines)
    ]


class ParallelDispatcher:
    """Counts chunks on a bounded process pool.

    ``dispatch`` yields one batch of partial results per chunk in completion
    order. Chunks never share state, so no ordering is kept here; every
    partial carries the tags the merger needs to restore line order.
    """

    def __init__(
        self,
        counter: UnitCounter,
        *,
        max_workers: Optional[int] = None,
        resource_manager: Optional[ResourceManager] = None,
    ) -> None:
        self.counter = counter
        self.resource_manager = resource_manager or ResourceManager()
        self.workers = self.resource_manager.plan_workers(max_workers)
        # bounds how far the splitter reads ahead of the pool
        self.max_in_flight = self.workers * 2

    def dispatch(self, chunks: Iterable[Chunk]) -> Iterator[List[PartialResult]]:
        chunk_iter = iter(chunks)
        head = [] if self.workers == 1 else list(islice(chunk_iter, 2))
        # a single chunk never pays for pool startup
        if self.workers == 1 or len(head) < 2:
            for chunk in chain(head, chunk_iter):
                yield count_chunk((self.counter, chunk))
            return

        chunk_iter = chain(head, chunk_iter)
        in_flight: Dict[Future, int] = {}

        with self.resource_manager.reserve(workers=self.workers):
            with ProcessPoolExecutor(max_workers=self.workers) as pool:

                def submit_next() -> bool:
                    chunk = next(chunk_iter, None)
                    if chunk is None:
                        return False
                    # the chunk is moved into the task; nothing here keeps it
                    in_flight[pool.submit(count_chunk, (self.counter, chunk))] = chunk.index
                    return True

                try:
                    while len(in_flight) < self.max_in_flight and submit_next():
                        pass

                    while in_flight:
                        done, _ = wait(in_flight.keys(), return_when=FIRST_COMPLETED)
                        for future in done:
                            in_flight.pop(future)
                            yield future.result()
                        while len(in_flight) < self.max_in_flight and submit_next():
                            pass
                finally:
                    for future in in_flight:
                        future.cancel()
