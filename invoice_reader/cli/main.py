"""Command line interface for the invoice reader.

Usage:
    invoice-reader read invoice.pdf
    invoice-reader read scan.jpg --no-cache
    invoice-reader bench ./invoices --concurrency 8
    invoice-reader bench ./invoices --metrics

Environment variables (OCR_PROVIDER, OCR_LANG, CONCURRENCY, ...) are read
through Settings; see invoice_reader.shared.config.
"""

import argparse
import asyncio
import logging
import sys
import time
import traceback
from pathlib import Path

from invoice_reader.acquisition.service import DocumentFormat, classify_format
from invoice_reader.extraction.schema import InvoiceRecord
from invoice_reader.pipeline.metrics import get_metrics
from invoice_reader.pipeline.service import InvoiceReader
from invoice_reader.queue.batch import iter_outcomes
from invoice_reader.shared.config import Settings
from invoice_reader.shared.errors import InvoiceReaderError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

ROW_FORMAT = "{:<40}{:<15}{:<15}{}"


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="invoice-reader",
        description="Extract structured data from Polish invoices (PDF and images)",
    )
    parser.add_argument("--debug", action="store_true", help="Debug logging and tracebacks")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: LOG_LEVEL or INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    read_parser = subparsers.add_parser("read", help="Read a single invoice")
    read_parser.add_argument("path", type=Path, help="PDF or image file")
    read_parser.add_argument("--no-cache", action="store_true", help="Bypass the result cache")

    bench_parser = subparsers.add_parser("bench", help="Benchmark all invoices in a folder")
    bench_parser.add_argument("folder", type=Path, help="Folder with PDF and image files")
    bench_parser.add_argument(
        "--concurrency", type=int, default=None, help="Files processed in parallel"
    )
    bench_parser.add_argument("--no-cache", action="store_true", help="Bypass the result cache")
    bench_parser.add_argument(
        "--metrics", action="store_true", help="Print Prometheus metrics after the summary"
    )

    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    """Create settings from the environment with command line overrides."""
    overrides: dict[str, object] = {}
    if args.debug:
        overrides["debug"] = True
    if args.log_level:
        overrides["log_level"] = args.log_level
    return Settings(**overrides)


def configure_logging(settings: Settings) -> None:
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level)
    logging.basicConfig(level=level, format=LOG_FORMAT)


def find_invoice_files(folder: Path) -> list[Path]:
    """List supported invoice files in a folder, sorted by name."""
    return sorted(
        path
        for path in folder.iterdir()
        if path.is_file() and classify_format(path) is not DocumentFormat.UNSUPPORTED
    )


def handle_read(args: argparse.Namespace, settings: Settings) -> int:
    print(f"Reading invoice from {args.path}...")
    start_time = time.perf_counter()

    with InvoiceReader(settings) as reader:
        record = reader.read_invoice(args.path, use_cache=not args.no_cache)

    elapsed_ms = (time.perf_counter() - start_time) * 1000
    print()
    print(record.model_dump_json(indent=2))
    print(f"\nCompleted in {elapsed_ms:.0f}ms")
    return 0


def handle_bench(args: argparse.Namespace, settings: Settings) -> int:
    if not args.folder.is_dir():
        print(f"Error: Not a folder: {args.folder}", file=sys.stderr)
        return 1

    files = find_invoice_files(args.folder)
    if not files:
        print("Error: No invoice files found in folder", file=sys.stderr)
        return 1

    concurrency = args.concurrency or settings.concurrency
    print(f"\nBenchmarking {len(files)} invoices (concurrency {concurrency})...\n")
    print(ROW_FORMAT.format("File", "Time (ms)", "Provider", "Confidence"))
    print("=" * 85)

    with InvoiceReader(settings) as reader:
        times = asyncio.run(_run_bench(reader, files, concurrency, not args.no_cache))

    print("=" * 85)

    if times:
        print("\nResults:")
        print(f"  Successful: {len(times)}/{len(files)}")
        print(f"  Average time: {sum(times) / len(times):.0f}ms")
        print(f"  Min time: {min(times)}ms")
        print(f"  Max time: {max(times)}ms")
    else:
        print(f"\nResults:\n  Successful: 0/{len(files)}")

    if args.metrics:
        body, _ = get_metrics()
        print(f"\n{body.decode()}")

    return 0


async def _run_bench(
    reader: InvoiceReader, files: list[Path], concurrency: int, use_cache: bool
) -> list[int]:
    """Process files and print one row per outcome. Returns successful timings."""

    async def _process(path: str | Path) -> InvoiceRecord:
        return await asyncio.to_thread(reader.read_invoice, path, use_cache)

    times: list[int] = []
    async for outcome in iter_outcomes(files, _process, concurrency):
        name = Path(outcome.path).name
        if outcome.record is not None:
            times.append(outcome.elapsed_ms)
            print(
                ROW_FORMAT.format(
                    name,
                    outcome.elapsed_ms,
                    outcome.record.provider_id,
                    f"{outcome.record.confidence * 100:.1f}%",
                )
            )
        else:
            cause = getattr(outcome.error, "cause", outcome.error)
            print(ROW_FORMAT.format(name, outcome.elapsed_ms, "ERROR", str(cause)[:40]))
    return times


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Process exit code
    """
    args = parse_arguments(argv)
    settings = build_settings(args)
    configure_logging(settings)

    try:
        if args.command == "read":
            return handle_read(args, settings)
        return handle_bench(args, settings)
    except InvoiceReaderError as e:
        print(f"Error: {e}", file=sys.stderr)
        if settings.debug:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
