"""
Command-line entry point.

    course-extract PATH [-o OUTPUT_DIR] [--workers N] [--on-io-error halt|continue] ...

PATH is a .warc.gz file, its .warc.os.cdx.gz companion, or a directory of
capture pairs. Exit codes: 0 ok, 1 run halted (or --strict with failed
records), 2 bad input / usage.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError
from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm
from warcio.exceptions import ArchiveLoadFailed  # type: ignore

from .bundle.ash0 import Ash0Decoder
from .config import ExtractConfig
from .dto import CapturePair
from .errors import CaptureDiscoveryError
from .intake.discovery import discover_captures
from .orchestration.runner import run_pairs
from .utils import ensure_dirs, init_logging

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="course-extract",
        description="Extract captured courses from WARC captures into <id>.tar.zst archives.",
    )
    ap.add_argument("path", help="A .warc.gz or .warc.os.cdx.gz file, or a directory of capture pairs.")
    ap.add_argument("--output-dir", "-o", default="output", help="Where archives are written (default: output).")
    ap.add_argument("--level", type=int, default=19, help="zstd compression level, 1-22 (default: 19).")
    ap.add_argument(
        "--workers",
        "-j",
        type=int,
        default=1,
        help=(
            "Records converted concurrently (default: 1). Threads only overlap archive I/O;"
            " ASH0 decoding holds the GIL, so expect little speedup on CPU-bound runs."
        ),
    )
    ap.add_argument(
        "--on-io-error",
        choices=("halt", "continue"),
        default="halt",
        help="Stop the run on storage errors, or just fail that record (default: halt).",
    )
    ap.add_argument("--verify", action="store_true", help="Read each archive back after writing it.")
    ap.add_argument("--strict", action="store_true", help="Exit non-zero if any record failed.")
    ap.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    ap.add_argument("--log-level", default=None, help="Logging level (default: $COURSE_EXTRACT_LOG_LEVEL or INFO).")
    ap.add_argument("--log-file", default=None, help="Also log to this rotating file.")
    return ap


def _progress_bar(pair: CapturePair) -> tqdm:
    return tqdm(
        total=pair.record_count,
        desc=f"[{pair.name}] Processing files",
        unit="rec",
        ncols=100,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = init_logging(args.log_level, args.log_file)

    try:
        cfg = ExtractConfig(
            output_dir=Path(args.output_dir),
            zstd_level=args.level,
            workers=args.workers,
            on_io_error=args.on_io_error,
            verify_output=args.verify,
        )
    except ValidationError as e:
        logger.error("invalid options: %s", e)
        return EXIT_USAGE

    try:
        pairs = discover_captures(args.path)
    except CaptureDiscoveryError as e:
        logger.error("discovery: %s", e)
        return EXIT_USAGE

    try:
        ensure_dirs(cfg.output_dir)
    except OSError as e:
        logger.error("cannot create output directory %s: %s", cfg.output_dir, e)
        return EXIT_FAILED

    factory = None if args.no_progress else _progress_bar
    try:
        with logging_redirect_tqdm(loggers=[logger]):
            summary = run_pairs(pairs, decoder=Ash0Decoder(), cfg=cfg, progress_factory=factory)
    except ArchiveLoadFailed as e:
        logger.error("read: malformed WARC capture: %s", e)
        return EXIT_FAILED
    except OSError:
        logger.exception("run halted during extraction")
        return EXIT_FAILED
    except KeyboardInterrupt:
        logger.warning("interrupted")
        return EXIT_FAILED

    logger.info(
        "Done: %d attempted, %d written, %d skipped, %d failed",
        summary.attempted,
        summary.written,
        summary.skipped,
        summary.failed,
    )
    if args.strict and summary.failed:
        return EXIT_FAILED
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
