"""Command line driver: resolve inputs, count each one, print a table."""
from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from common.config import build_counting_settings, load_runtime_config
from common.errors import BackendError, StreamReadError
from common.models import (
    CounterKind,
    CountingSettings,
    CountSet,
    FileProgress,
    Report,
    ReportMode,
    ordered_counters,
)
from common.progress import BenchmarkRecorder
from core.counting import CountingEngine

STDIN_IDENTIFIER = "-"
COMMANDS = {"count", "benchmark"}

COUNTER_FLAGS = (
    ("lines", CounterKind.LINES),
    ("words", CounterKind.WORDS),
    ("bytes", CounterKind.BYTES),
    ("graphemes", CounterKind.GRAPHEMES),
    ("codepoints", CounterKind.CODEPOINTS),
)


def collect_input_files(targets: Iterable[str]) -> List[str]:
    """Expand directories recursively; stdin and missing paths pass through."""

    files: List[str] = []
    for target in targets:
        path = Path(target)
        if target != STDIN_IDENTIFIER and path.is_dir():
            files.extend(str(p) for p in sorted(path.rglob("*")) if p.is_file())
        else:
            files.append(target)
    deduped = []
    seen = set()
    for name in files:
        if name in seen and name != STDIN_IDENTIFIER:
            continue
        seen.add(name)
        deduped.append(name)
    return deduped


def render_progress(progress: FileProgress) -> None:
    print(
        f"[count] {progress.source} lines={progress.processed_lines} "
        f"chunks={progress.chunks_merged} phase={progress.current_phase}",
        file=sys.stderr,
    )


def format_table(rows: Sequence[Sequence[str]], *, elastic: bool = True) -> str:
    """Tab-separated rows, or space-padded columns when ``elastic``."""

    if not elastic:
        return "".join("\t".join(row) + "\n" for row in rows)
    widths = [max(len(row[idx]) for row in rows) for idx in range(len(rows[0]))]
    lines = []
    for row in rows:
        cells = [cell.ljust(width) for cell, width in zip(row, widths)]
        lines.append("  ".join(cells).rstrip() + "\n")
    return "".join(lines)


def selected_counters(args: argparse.Namespace) -> List[CounterKind]:
    return [counter for flag, counter in COUNTER_FLAGS if getattr(args, flag, False)]


def settings_from_args(args: argparse.Namespace, *, mode: Optional[ReportMode] = None) -> CountingSettings:
    runtime = load_runtime_config(
        profile=args.profile,
        config_path=Path(args.config) if args.config else None,
    )
    requested_mode = mode or (ReportMode(args.mode) if getattr(args, "mode", None) else None)
    return build_counting_settings(
        runtime,
        counters=selected_counters(args) or None,
        mode=requested_mode,
        chunk_size=args.chunk_size,
        max_workers=args.workers,
        count_final_unterminated_line=True if getattr(args, "count_final_line", False) else None,
        count_trailing_newlines_only=True if getattr(args, "literal_newlines", False) else None,
    )


def count_source(engine: CountingEngine, source: str, *, verbose: bool = False) -> Report:
    callback = render_progress if verbose else None
    if source == STDIN_IDENTIFIER:
        return engine.count_stream(sys.stdin.buffer, source=source, progress_callback=callback)
    return engine.count_path(Path(source), progress_callback=callback)


def _count_cells(counts: CountSet, counters: Sequence[CounterKind]) -> List[str]:
    return [str(counts.get(counter)) for counter in counters]


def command_count(args: argparse.Namespace) -> int:
    settings = settings_from_args(args)
    engine = CountingEngine(
        settings,
        progress_log=Path(args.progress_log) if args.progress_log else None,
    )
    counters = ordered_counters(settings.counters)
    line_mode = settings.mode is ReportMode.LINE

    header = [counter.value for counter in counters] + ["filename"]
    rows: List[List[str]] = [(["line"] if line_mode else []) + header]
    grand_total = CountSet.zero(settings.counters)
    counted = 0
    failures = 0

    for source in collect_input_files(args.files or [STDIN_IDENTIFIER]):
        try:
            report = count_source(engine, source, verbose=args.verbose)
        except (StreamReadError, OSError, UnicodeDecodeError) as exc:
            # one unreadable input never stops the others
            print(f"uwc: {source}: {exc}", file=sys.stderr)
            failures += 1
            continue
        counted += 1
        grand_total = grand_total + report.total
        if line_mode:
            for line in report.lines:
                rows.append([str(line.line_number)] + _count_cells(line.counts, counters) + [source])
            rows.append(["total"] + _count_cells(report.total, counters) + [source])
        else:
            rows.append(_count_cells(report.total, counters) + [source])

    if counted > 1:
        rows.append((["total"] if line_mode else []) + _count_cells(grand_total, counters) + ["total"])

    sys.stdout.write(format_table(rows, elastic=not args.no_elastic))
    return 1 if failures else 0


def command_benchmark(args: argparse.Namespace) -> int:
    files = [name for name in collect_input_files(args.inputs) if name != STDIN_IDENTIFIER]
    if not files:
        raise SystemExit("No input files found for benchmark.")

    settings = settings_from_args(args, mode=ReportMode.TOTAL)
    settings.counters = settings.counters | {CounterKind.LINES, CounterKind.BYTES}
    engine = CountingEngine(settings)
    recorder = BenchmarkRecorder(Path(args.log))

    start = time.perf_counter()
    reports = [engine.count_path(Path(name)) for name in files]
    duration = time.perf_counter() - start
    total_lines = sum(report.total.lines or 0 for report in reports)
    total_bytes = sum(report.total.bytes or 0 for report in reports)
    throughput = total_lines / duration if duration else 0.0
    recorder.record(
        dataset=",".join(args.inputs),
        metrics={
            "seconds": duration,
            "lines": total_lines,
            "bytes": total_bytes,
            "lines_per_second": throughput,
            "chunk_size": settings.chunk_size,
        },
    )
    print(
        f"Benchmark complete: {len(files)} file(s) in {duration:.2f}s, throughput {throughput:,.0f} lines/s"
    )
    return 0


def _add_engine_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--profile",
        default="default",
        help="Profile from the bundled defaults.json (e.g., default, low_memory, workstation)",
    )
    parser.add_argument("--config", help="Alternate configuration JSON")
    parser.add_argument("--chunk-size", type=int, help="Lines per parallel work unit")
    parser.add_argument("--workers", type=int, help="Worker processes (defaults to CPU count)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="uwc", description="Counts lines, words, bytes, graphemes, and code points in UTF-8 text"
    )
    subparsers = parser.add_subparsers(dest="command")

    count = subparsers.add_parser("count", help="Count units in files or stdin")
    count.add_argument("files", nargs="*", help="Files or directories; '-' reads stdin")
    count.add_argument("-l", "--lines", action="store_true", help="Count lines")
    count.add_argument("-w", "--words", action="store_true", help="Count words")
    count.add_argument("-b", "--bytes", action="store_true", help="Count bytes")
    count.add_argument("-c", "--graphemes", action="store_true", help="Count grapheme clusters")
    count.add_argument("-p", "--codepoints", action="store_true", help="Count code points")
    count.add_argument("--mode", choices=[mode.value for mode in ReportMode], help="Report shape")
    count.add_argument(
        "--count-final-line",
        action="store_true",
        help="Count a final line without a terminator as a line",
    )
    count.add_argument(
        "--literal-newlines",
        action="store_true",
        help="Only count terminator sequences as lines",
    )
    count.add_argument("--no-elastic", action="store_true", help="Plain tab-separated output")
    count.add_argument("--progress-log", help="Path to JSONL file for structured progress events")
    count.add_argument("-v", "--verbose", action="store_true", help="Print progress to stderr")
    _add_engine_options(count)
    count.set_defaults(func=command_count)

    benchmark = subparsers.add_parser("benchmark", help="Measure counting throughput")
    benchmark.add_argument("inputs", nargs="+", help="Files or directories to process")
    benchmark.add_argument(
        "--log",
        default="artifacts/benchmarks.jsonl",
        help="Where to append benchmark metrics",
    )
    _add_engine_options(benchmark)
    benchmark.set_defaults(func=command_benchmark)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    # without a subcommand, uwc behaves like `uwc count`
    if not argv or argv[0] not in COMMANDS | {"-h", "--help"}:
        argv = ["count"] + argv
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except BackendError as exc:
        print(f"uwc: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
