"""
Data Transfer Objects (DTOs) used across the extraction pipeline.

These are intentionally small, immutable (where sensible), and independent
of any I/O or archive libraries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Literal, Optional
from urllib.parse import unquote, urlparse

OutcomeStatus = Literal["written", "skipped", "failed"]


# === Intake ===
@dataclass(frozen=True)
class CapturePair:
    """One crawl capture: a WARC file and its companion CDX index."""
    base: str                # shared path prefix, e.g. ".../capture-00001"
    warc_path: Path          # <base>.warc.gz
    cdx_path: Path           # <base>.warc.os.cdx.gz
    record_count: int = 0    # CDX lines minus the header, checked at discovery

    @property
    def name(self) -> str:
        return Path(self.base).name


@dataclass(frozen=True)
class CaptureRecord:
    """Minimal view of one archive record; everything the pipeline needs."""
    record_type: str               # WARC-Type, e.g. "response"
    target_uri: str                # WARC-Target-URI
    payload: bytes                 # HTTP body of the captured response
    status_code: Optional[int] = None  # HTTP status, None when not an HTTP record

    @property
    def identifier(self) -> str:
        """Final path segment of the target URI, percent-decoded (may be empty)."""
        path = unquote(urlparse(self.target_uri).path)
        return path.rsplit("/", 1)[-1]


# === Bundle ===
@dataclass(frozen=True)
class Segment:
    """
    One marker-delimited range of a raw payload.

    `data` starts with the marker itself, which is where the decoder
    expects its header; `body` is what follows the marker.
    """
    index: int
    offset: int
    data: bytes
    marker_len: int = 4

    @property
    def body(self) -> bytes:
        return self.data[self.marker_len:]

    def __len__(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class DecodeResult:
    """Explicit success/failure result of decoding one segment."""
    ok: bool
    data: bytes = b""
    error: Optional[str] = None

    @classmethod
    def success(cls, data: bytes) -> "DecodeResult":
        return cls(ok=True, data=bytes(data))

    @classmethod
    def failure(cls, error: str) -> "DecodeResult":
        return cls(ok=False, error=error)


@dataclass(frozen=True)
class ArchiveEntry:
    """One file written into an output archive."""
    name: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


# === Outcomes ===
@dataclass(frozen=True)
class RecordOutcome:
    identifier: str
    status: OutcomeStatus
    detail: str = ""
    output_path: Optional[Path] = None


@dataclass
class RunSummary:
    """Counters for one run (mutable while the run is in progress)."""
    attempted: int = 0
    written: int = 0
    skipped: int = 0
    failed: int = 0
    failures: List[RecordOutcome] = field(default_factory=list)

    def record(self, outcome: RecordOutcome) -> None:
        if outcome.status == "written":
            self.written += 1
        elif outcome.status == "skipped":
            self.skipped += 1
        else:
            self.failed += 1
            self.failures.append(outcome)

    def merge(self, other: "RunSummary") -> None:
        self.attempted += other.attempted
        self.written += other.written
        self.skipped += other.skipped
        self.failed += other.failed
        self.failures.extend(other.failures)
