"""
course_extract: captured course levels from WARC crawls -> .tar.zst archives.

Public API (stable):
- ExtractConfig            (configuration)
- split_bundle             (marker-delimited segment splitter)
- Ash0Decoder              (ASH0 segment decoder)
- write_course_archive     (fixed four-entry .tar.zst writer)
- run_capture / run_pairs  (record pipeline)
- RecordSourcePort         (input adapter interface)
- SegmentDecoderPort       (decoder interface)
- WarcRecordSource         (warcio-backed record source)
- DTOs: CaptureRecord, CapturePair, Segment, DecodeResult, ArchiveEntry,
        RecordOutcome, RunSummary
"""

from __future__ import annotations

# Configuration
from .config import ExtractConfig

# Bundle core
from .bundle.ash0 import Ash0Decoder, decompress_ash0
from .bundle.repackager import ENTRY_NAMES, read_course_archive, write_course_archive
from .bundle.splitter import split_bundle, split_course_bundle

# Orchestration
from .orchestration.runner import convert_record, run_capture, run_pairs

# Ports
from .ports import ProgressPort, RecordSourcePort, SegmentDecoderPort

# Adapters
from .intake.discovery import discover_captures
from .intake.warc_source import WarcRecordSource

# DTOs
from .dto import (
    ArchiveEntry,
    CapturePair,
    CaptureRecord,
    DecodeResult,
    RecordOutcome,
    RunSummary,
    Segment,
)

# Errors
from .errors import (
    BundleFormatError,
    CaptureDiscoveryError,
    CourseExtractError,
    RecordError,
    RecordIdentifierError,
    SegmentDecodeError,
)

__all__ = [
    "ExtractConfig",
    "Ash0Decoder",
    "decompress_ash0",
    "ENTRY_NAMES",
    "read_course_archive",
    "write_course_archive",
    "split_bundle",
    "split_course_bundle",
    "convert_record",
    "run_capture",
    "run_pairs",
    "ProgressPort",
    "RecordSourcePort",
    "SegmentDecoderPort",
    "discover_captures",
    "WarcRecordSource",
    "ArchiveEntry",
    "CapturePair",
    "CaptureRecord",
    "DecodeResult",
    "RecordOutcome",
    "RunSummary",
    "Segment",
    "BundleFormatError",
    "CaptureDiscoveryError",
    "CourseExtractError",
    "RecordError",
    "RecordIdentifierError",
    "SegmentDecodeError",
]
