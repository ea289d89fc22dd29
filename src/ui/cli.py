"""CLI covering Parse → (Enrich) → Write, plus sample generation and benchmarks."""
from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from dotenv import load_dotenv

from common.config import load_runtime_config
from common.errors import BackendError
from common.models import FileProgress, RuntimeConfig
from common.progress import BenchmarkRecorder
from core.enrichment import OpenAIFieldCleaner, PassthroughConsumer, RowConsumer
from core.ingest import FileChunkSource, IngestJobRunner, RowAssembler, RunSummary
from core.output import WRITER_FORMATS
from core.samples import write_sample_csv

SUPPORTED_EXTENSIONS = {".csv", ".txt"}
MAX_REPORTED_ISSUES = 20


def collect_input_files(targets: Iterable[Path]) -> List[Path]:
    files: List[Path] = []
    for target in targets:
        if target.is_dir():
            files.extend(
                sorted(
                    p
                    for p in target.rglob("*")
                    if p.is_file() and p.suffix.lower() in SUPPORTED_EXTENSIONS
                )
            )
        elif target.is_file():
            files.append(target)
    deduped = []
    seen = set()
    for path in files:
        if path in seen:
            continue
        seen.add(path)
        deduped.append(path)
    return deduped


def render_progress(progress: FileProgress) -> None:
    total = progress.total_bytes if progress.total_bytes else "?"
    eta = f" eta={progress.eta_seconds:.1f}s" if progress.eta_seconds is not None else ""
    print(
        f"[parse/progress] {progress.file_path.name} chunk={progress.chunk_index}"
        f" bytes={progress.processed_bytes}/{total} rows={progress.processed_rows}{eta}"
    )


def load_runtime(args: argparse.Namespace) -> RuntimeConfig:
    overrides: Dict[str, Dict[str, Any]] = {}
    if getattr(args, "chunk_size", None):
        overrides.setdefault("profile", {})["chunk_size"] = args.chunk_size
    if getattr(args, "error_policy", None):
        overrides.setdefault("global", {})["error_policy"] = args.error_policy
    if getattr(args, "failure_policy", None):
        overrides.setdefault("global", {})["failure_policy"] = args.failure_policy
    config_path = Path(args.config) if getattr(args, "config", None) else None
    return load_runtime_config(profile=args.profile, config_path=config_path, overrides=overrides)


def build_consumer(args: argparse.Namespace, runtime: RuntimeConfig) -> RowConsumer:
    if not args.enrich:
        return PassthroughConsumer()
    load_dotenv()
    return OpenAIFieldCleaner.from_environment(
        runtime.enrichment,
        max_workers=runtime.profile.max_parallel_requests,
    )


def command_parse(args: argparse.Namespace) -> int:
    runtime = load_runtime(args)
    consumer = build_consumer(args, runtime)
    runner = IngestJobRunner(
        runtime,
        writer_format=args.format,
        consumer=consumer,
        telemetry_log=Path(args.telemetry_log) if args.telemetry_log else None,
        progress_log=Path(args.progress_log) if args.progress_log else None,
    )
    print(
        f"[parse] {args.source} -> {args.dest} using profile '{args.profile}' "
        f"(chunk_size={runtime.profile.chunk_size}, batch_rows={runtime.profile.batch_rows}, "
        f"format={args.format}, enrich={'on' if args.enrich else 'off'})"
    )
    summary = runner.run(
        Path(args.source),
        Path(args.dest),
        progress_callback=None if args.quiet else render_progress,
    )
    report_summary(summary, enrich=args.enrich)
    return 0


def report_summary(summary: RunSummary, *, enrich: bool) -> None:
    print(f"[parse] Headers: {summary.header}")
    print(
        f"[parse] Processed {summary.chunks} chunk(s), {summary.lines} line(s), "
        f"{summary.records_parsed} record(s) in {summary.duration_seconds:.2f}s"
    )
    if summary.issues:
        print(f"[parse] {len(summary.issues)} line issue(s), {summary.skipped_lines} line(s) skipped")
        for issue in summary.issues[:MAX_REPORTED_ISSUES]:
            print(f"[parse]   line {issue.line_index} byte {issue.byte_offset}: {issue.kind} {issue.detail}")
        if len(summary.issues) > MAX_REPORTED_ISSUES:
            print(f"[parse]   ... {len(summary.issues) - MAX_REPORTED_ISSUES} more")
    if enrich and summary.usage is not None:
        usage = summary.usage
        print(
            f"[enrich] requests={usage.requests} failed_records={summary.failed_enrichments} "
            f"dropped={summary.dropped_rows} prompt_tokens={usage.prompt_tokens} "
            f"completion_tokens={usage.completion_tokens} "
            f"TPM={usage.tokens_per_minute:,.0f} RPM={usage.requests_per_minute:,.0f}"
        )
    print(f"Successfully wrote {summary.rows_written} row(s) to {summary.output_path}")


def command_generate(args: argparse.Namespace) -> int:
    output = Path(args.output) if args.output else Path(f"random_data_{args.rows}_rows.csv")
    print(f"[generate] Generating CSV with {args.rows} rows...")
    path = write_sample_csv(output, args.rows, seed=args.seed)
    print(f"[generate] CSV file with {args.rows} rows generated at: {path}")
    return 0


def command_benchmark(args: argparse.Namespace) -> int:
    inputs = [Path(p) for p in args.inputs]
    files = collect_input_files(inputs)
    if not files:
        raise SystemExit("No input files found for benchmark.")

    runtime = load_runtime(args)
    recorder = BenchmarkRecorder(Path(args.log))
    total_rows = 0
    total_bytes = 0
    start = time.perf_counter()
    for path in files:
        assembler = RowAssembler(
            error_policy=runtime.global_settings.error_policy,
            max_remainder_bytes=runtime.profile.max_remainder_bytes,
        )
        file_start = time.perf_counter()
        with FileChunkSource(path, chunk_size=runtime.profile.chunk_size) as source:
            for chunk in source.chunks():
                assembler.feed(chunk)
        assembler.finish()
        recorder.record(
            str(path),
            seconds=time.perf_counter() - file_start,
            bytes_read=assembler.summary.bytes_read,
            rows=assembler.summary.records,
            chunk_size=runtime.profile.chunk_size,
        )
        total_rows += assembler.summary.records
        total_bytes += assembler.summary.bytes_read
    duration = time.perf_counter() - start
    throughput = total_rows / duration if duration else 0.0
    print(
        f"Benchmark complete: {len(files)} file(s), {total_bytes:,} bytes in {duration:.2f}s, "
        f"throughput {throughput:,.0f} rows/s"
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chunkcsv", description="Constant-memory, quote-aware CSV parsing and enrichment"
    )
    parser.add_argument("--verbose", action="store_true", help="Log INFO messages from the engine")
    subparsers = parser.add_subparsers(dest="command")

    parse = subparsers.add_parser("parse", help="Parse a CSV file into records and write them out")
    parse.add_argument("source", help="CSV file to parse")
    parse.add_argument("dest", nargs="?", default="output.json", help="Output file path")
    _add_runtime_arguments(parse)
    parse.add_argument(
        "--format",
        choices=list(WRITER_FORMATS),
        default="json",
        help="Output format (JSON array by default)",
    )
    parse.add_argument(
        "--enrich",
        action="store_true",
        help="Clean phone/address fields with the OpenAI API (needs OPENAI_API_KEY)",
    )
    parse.add_argument(
        "--failure-policy",
        choices=["keep", "drop"],
        help="What to write for records the enrichment failed on",
    )
    parse.add_argument(
        "--progress-log",
        help="Path to JSONL file for structured progress events",
    )
    parse.add_argument(
        "--telemetry-log",
        help="Optional JSONL file capturing per-run throughput and issues",
    )
    parse.add_argument("--quiet", action="store_true", help="Do not print per-chunk progress")
    parse.set_defaults(func=command_parse)

    generate = subparsers.add_parser("generate", help="Write a synthetic CSV file")
    generate.add_argument("rows", type=int, help="Number of data rows")
    generate.add_argument("--output", help="Destination path (random_data_<rows>_rows.csv by default)")
    generate.add_argument("--seed", type=int, help="Random seed for reproducible output")
    generate.set_defaults(func=command_generate)

    benchmark = subparsers.add_parser("benchmark", help="Measure parse throughput")
    benchmark.add_argument("inputs", nargs="+", help="Files or directories to process")
    _add_runtime_arguments(benchmark)
    benchmark.add_argument(
        "--log",
        default="artifacts/benchmarks.jsonl",
        help="Where to append benchmark metrics",
    )
    benchmark.set_defaults(func=command_benchmark)

    return parser


def _add_runtime_arguments(command: argparse.ArgumentParser) -> None:
    command.add_argument(
        "--profile",
        default="low_memory",
        help="Profile from config/defaults.json (e.g., low_memory, workstation)",
    )
    command.add_argument("--config", help="Alternative configuration JSON")
    command.add_argument("--chunk-size", type=int, help="Override the profile chunk size in bytes")
    command.add_argument(
        "--error-policy",
        choices=["skip", "replace"],
        help="Handling of lines that are not valid UTF-8",
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 0
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except BackendError as exc:
        print(f"[{args.command}] FATAL: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
