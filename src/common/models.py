"""Data models shared across the CLI, counting engine, and workers."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional

from .errors import InvariantViolation


class CounterKind(str, Enum):
    """Units the engine can count. Declaration order is display order."""

    LINES = "lines"
    WORDS = "words"
    BYTES = "bytes"
    GRAPHEMES = "graphemes"
    CODEPOINTS = "codepoints"


ALL_COUNTERS: FrozenSet[CounterKind] = frozenset(CounterKind)
DEFAULT_COUNTERS: FrozenSet[CounterKind] = frozenset(
    {CounterKind.LINES, CounterKind.WORDS, CounterKind.BYTES}
)


def ordered_counters(selection: Iterable[CounterKind]) -> List[CounterKind]:
    chosen = set(selection)
    return [counter for counter in CounterKind if counter in chosen]


class ReportMode(str, Enum):
    TOTAL = "total"
    LINE = "line"


@dataclass(slots=True)
class CountSet:
    """Counters for one line or one input; unselected counters stay ``None``."""

    lines: Optional[int] = None
    words: Optional[int] = None
    bytes: Optional[int] = None
    graphemes: Optional[int] = None
    codepoints: Optional[int] = None

    @classmethod
    def zero(cls, selection: Iterable[CounterKind]) -> "CountSet":
        return cls(**{counter.value: 0 for counter in selection})

    def selection(self) -> FrozenSet[CounterKind]:
        return frozenset(
            counter for counter in CounterKind if getattr(self, counter.value) is not None
        )

    def get(self, counter: CounterKind) -> Optional[int]:
        return getattr(self, counter.value)

    def as_dict(self) -> Dict[str, int]:
        """Populated counters keyed by name, in display order."""

        return {
            counter.value: getattr(self, counter.value)
            for counter in CounterKind
            if getattr(self, counter.value) is not None
        }

    def __add__(self, other: object) -> "CountSet":
        if not isinstance(other, CountSet):
            return NotImplemented
        selection = self.selection()
        if selection != other.selection():
            raise InvariantViolation(
                "Cannot add count sets with different counter selections",
                context={
                    "left": sorted(c.value for c in selection),
                    "right": sorted(c.value for c in other.selection()),
                },
            )
        return CountSet(
            **{
                counter.value: getattr(self, counter.value) + getattr(other, counter.value)
                for counter in selection
            }
        )


@dataclass(slots=True)
class LineRecord:
    """One line of input; ``text`` keeps its terminator when there is one."""

    text: str
    had_terminator: bool
    number: int


@dataclass(slots=True)
class Chunk:
    """Contiguous run of whole lines handed to a single worker."""

    index: int
    first_line: int
    lines: List[LineRecord] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.lines)


@dataclass(slots=True)
class PartialResult:
    """Counts for exactly one line, tagged for deterministic merging."""

    chunk_index: int
    offset: int
    line_number: int
    counts: CountSet


@dataclass(slots=True)
class LineCount:
    line_number: int
    counts: CountSet


@dataclass(slots=True)
class Report:
    """Outcome of counting one input."""

    mode: ReportMode
    total: CountSet
    lines: List[LineCount] = field(default_factory=list)


@dataclass(slots=True)
class CountingSettings:
    """Resolved configuration for a single counting run."""

    counters: FrozenSet[CounterKind] = DEFAULT_COUNTERS
    mode: ReportMode = ReportMode.TOTAL
    chunk_size: int = 10_000
    count_final_unterminated_line: bool = False
    count_trailing_newlines_only: bool = False
    read_block_bytes: int = 65_536
    max_workers: Optional[int] = None
    error_policy: str = "fail-fast"  # fail-fast | replace


@dataclass(slots=True)
class FileProgress:
    """Progress payload reported back to the CLI while counting."""

    source: str
    processed_lines: int
    chunks_merged: int
    current_phase: str
    elapsed_seconds: Optional[float] = None
    lines_per_second: Optional[float] = None


@dataclass(slots=True)
class GlobalSettings:
    """Global knobs that apply across profiles."""

    error_policy: str = "fail-fast"  # fail-fast | replace
    counters: FrozenSet[CounterKind] = DEFAULT_COUNTERS
    mode: ReportMode = ReportMode.TOTAL
    count_final_unterminated_line: bool = False
    count_trailing_newlines_only: bool = False


@dataclass(slots=True)
class ResourceLimits:
    """Optional hardware budgets enforced by the ResourceManager."""

    max_workers: Optional[int] = None


@dataclass(slots=True)
class ProfileSettings:
    """Profile-specific performance knobs."""

    description: str
    chunk_size: int = 10_000
    read_block_bytes: int = 65_536
    resource_limits: ResourceLimits = field(default_factory=ResourceLimits)


@dataclass(slots=True)
class RuntimeConfig:
    """Resolved configuration document for a single run."""

    global_settings: GlobalSettings
    profile: ProfileSettings
