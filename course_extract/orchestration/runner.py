"""
Record pipeline: archive records in, one .tar.zst per course out.

Per record:  identifier -> split (exactly 4 segments) -> decode x4 (non-empty)
             -> repackage.

Split and decode run entirely in memory before the output file is opened,
so a malformed record never leaves an archive behind.

Failure policy
--------------
- RecordError (format, decode, identifier): logged, counted, run continues.
- OSError (storage): ExtractConfig.on_io_error decides; "halt" re-raises,
  "continue" counts the record as failed.

Concurrency
-----------
workers == 1 is strictly sequential. With more workers, conversions run on a
thread pool; at most one job per identifier is in flight (a repeat waits for
the earlier one) and in-flight jobs are bounded to 2 * workers so payloads do
not pile up in memory.
"""

from __future__ import annotations

import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from contextlib import nullcontext
from typing import Callable, ContextManager, Dict, Iterable, Iterator, List, Optional, Sequence

from ..bundle.repackager import (
    ARCHIVE_SUFFIX,
    ENTRY_NAMES,
    PART_SUFFIX,
    archive_path,
    build_entries,
    verify_course_archive,
    write_course_archive,
)
from ..bundle.splitter import split_course_bundle
from ..config import ExtractConfig
from ..dto import CapturePair, CaptureRecord, RecordOutcome, RunSummary, Segment
from ..errors import RecordError, RecordIdentifierError, SegmentDecodeError
from ..intake.warc_source import WarcRecordSource
from ..ports import ProgressPort, RecordSourcePort, SegmentDecoderPort
from ..utils import ensure_dirs

logger = logging.getLogger(__name__)

_HTTP_OK = 200
_BAD_IDENTIFIERS = ("", ".", "..")
_NAME_MAX = 255

ProgressFactory = Callable[[CapturePair], ContextManager[Optional[ProgressPort]]]


# === Single record ===


def derive_identifier(record: CaptureRecord) -> str:
    """Final path segment of the target URI; must be usable as a file name."""
    ident = record.identifier
    if ident in _BAD_IDENTIFIERS or "\\" in ident or "\x00" in ident:
        raise RecordIdentifierError(f"no usable file name in target URI {record.target_uri!r}")
    if len((ident + ARCHIVE_SUFFIX + PART_SUFFIX).encode("utf-8")) > _NAME_MAX:
        raise RecordIdentifierError(f"identifier too long for a file name in target URI {record.target_uri!r}")
    return ident


def decode_segments(segments: Sequence[Segment], decoder: SegmentDecoderPort) -> List[bytes]:
    """Decode each segment in slot order; failure or empty output is fatal for the record."""
    decoded: List[bytes] = []
    for slot, seg in zip(ENTRY_NAMES, segments):
        result = decoder.decode(seg.data)
        if not result.ok:
            raise SegmentDecodeError(slot, result.error or "decoder reported failure")
        if not result.data:
            raise SegmentDecodeError(slot, "empty output")
        decoded.append(result.data)
    return decoded


def convert_record(record: CaptureRecord, *, decoder: SegmentDecoderPort, cfg: ExtractConfig) -> RecordOutcome:
    """
    Convert one qualifying record into an archive.

    Raises RecordError subclasses for malformed records and OSError for
    storage failures; returns a "skipped" outcome for non-200 captures.
    """
    if cfg.require_http_ok and record.status_code is not None and record.status_code != _HTTP_OK:
        return RecordOutcome(
            identifier=record.identifier,
            status="skipped",
            detail=f"HTTP {record.status_code}",
        )

    identifier = derive_identifier(record)
    segments = split_course_bundle(record.payload, cfg.marker, expected=len(ENTRY_NAMES))
    entries = build_entries(decode_segments(segments, decoder))

    path = write_course_archive(
        archive_path(cfg.output_dir, identifier),
        entries,
        level=cfg.zstd_level,
        mode=cfg.entry_mode,
        mtime=cfg.entry_mtime,
    )
    if cfg.verify_output and not verify_course_archive(path, entries):
        raise OSError(f"archive read-back mismatch: {path}")
    return RecordOutcome(identifier=identifier, status="written", output_path=path)


def process_record(record: CaptureRecord, *, decoder: SegmentDecoderPort, cfg: ExtractConfig) -> RecordOutcome:
    """convert_record with the failure policy applied."""
    try:
        outcome = convert_record(record, decoder=decoder, cfg=cfg)
    except RecordError as e:
        logger.warning("record %s skipped: %s", record.identifier or record.target_uri, e)
        return RecordOutcome(identifier=record.identifier, status="failed", detail=str(e))
    except OSError as e:
        if cfg.on_io_error == "halt":
            logger.error("write failed for %s: %s", record.identifier, e)
            raise
        logger.error("write failed for %s, continuing: %s", record.identifier, e)
        return RecordOutcome(identifier=record.identifier, status="failed", detail=f"I/O error: {e}")

    if outcome.status == "skipped":
        logger.debug("record %s skipped: %s", outcome.identifier, outcome.detail)
    return outcome


# === One capture ===


def qualifying_records(source: RecordSourcePort, record_type: str = "response") -> Iterator[CaptureRecord]:
    """Records whose type tag matches; everything else is dropped silently."""
    for record in source.records():
        if record.record_type != record_type:
            continue
        yield record


def run_capture(
    source: RecordSourcePort,
    *,
    decoder: SegmentDecoderPort,
    cfg: ExtractConfig,
    progress: Optional[ProgressPort] = None,
) -> RunSummary:
    """
    Convert every qualifying record of one source.

    `progress` receives one update() per attempted record, whatever the
    outcome.
    """
    ensure_dirs(cfg.output_dir)
    records = qualifying_records(source, cfg.record_type)

    if cfg.workers == 1:
        return _run_sequential(records, decoder=decoder, cfg=cfg, progress=progress)
    return _run_parallel(records, decoder=decoder, cfg=cfg, progress=progress)


def _run_sequential(
    records: Iterable[CaptureRecord],
    *,
    decoder: SegmentDecoderPort,
    cfg: ExtractConfig,
    progress: Optional[ProgressPort],
) -> RunSummary:
    summary = RunSummary()
    for record in records:
        summary.attempted += 1
        summary.record(process_record(record, decoder=decoder, cfg=cfg))
        if progress is not None:
            progress.update(1)
    return summary


def _run_parallel(
    records: Iterable[CaptureRecord],
    *,
    decoder: SegmentDecoderPort,
    cfg: ExtractConfig,
    progress: Optional[ProgressPort],
) -> RunSummary:
    summary = RunSummary()
    capacity = 2 * cfg.workers
    in_flight: Dict[Future, str] = {}
    by_identifier: Dict[str, Future] = {}

    def collect(done: Iterable[Future]) -> None:
        for fut in done:
            ident = in_flight.pop(fut)
            if by_identifier.get(ident) is fut:
                del by_identifier[ident]
            summary.record(fut.result())
            if progress is not None:
                progress.update(1)

    with ThreadPoolExecutor(max_workers=cfg.workers) as executor:
        try:
            for record in records:
                summary.attempted += 1
                ident = record.identifier

                earlier = by_identifier.get(ident)
                if earlier is not None:
                    wait([earlier])
                    collect([earlier])

                while len(in_flight) >= capacity:
                    done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                    collect(done)

                fut = executor.submit(process_record, record, decoder=decoder, cfg=cfg)
                in_flight[fut] = ident
                by_identifier[ident] = fut

            while in_flight:
                done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                collect(done)
        except BaseException:
            for fut in in_flight:
                fut.cancel()
            raise

    return summary


# === Many captures ===


def run_pairs(
    pairs: Sequence[CapturePair],
    *,
    decoder: SegmentDecoderPort,
    cfg: ExtractConfig,
    progress_factory: Optional[ProgressFactory] = None,
) -> RunSummary:
    """Run every capture pair in order and merge their summaries."""
    total = RunSummary()
    for i, pair in enumerate(pairs, start=1):
        logger.info("Processing %s %d/%d", pair.base, i, len(pairs))
        source = WarcRecordSource(pair.warc_path)
        bar_ctx = progress_factory(pair) if progress_factory is not None else nullcontext(None)
        with bar_ctx as bar:
            summary = run_capture(source, decoder=decoder, cfg=cfg, progress=bar)
        logger.info(
            "Finished %s: %d attempted, %d written, %d skipped, %d failed",
            pair.name,
            summary.attempted,
            summary.written,
            summary.skipped,
            summary.failed,
        )
        total.merge(summary)
    return total
