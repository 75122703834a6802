"""
Exception taxonomy.

RecordError and its subclasses are scoped to a single archive record: the
runner logs them and moves on. CaptureDiscoveryError is raised at startup,
before any record is read. Storage problems surface as plain OSError and are
handled according to ExtractConfig.on_io_error.
"""

from __future__ import annotations

from typing import Sequence


class CourseExtractError(Exception):
    """Base class for all errors raised by this package."""


class RecordError(CourseExtractError):
    """A single record is malformed; the rest of the run is unaffected."""


class BundleFormatError(RecordError):
    def __init__(self, message: str, *, segment_count: int = 0, segment_sizes: Sequence[int] = ()) -> None:
        super().__init__(message)
        self.segment_count = segment_count
        self.segment_sizes = tuple(segment_sizes)


class SegmentDecodeError(RecordError):
    def __init__(self, slot: str, reason: str) -> None:
        super().__init__(f"failed to decompress {slot}: {reason}")
        self.slot = slot
        self.reason = reason


class RecordIdentifierError(RecordError):
    """Target URI does not yield a usable output file name."""


class CaptureDiscoveryError(CourseExtractError):
    """Input path, companion file or directory problem found at startup."""
