"""
Hexagonal interfaces (Ports) for the extraction pipeline.

These define the boundary between the bundle core and its collaborators.
Keep them small and implementation-agnostic so they're easy to fake in tests.
"""

from __future__ import annotations

from typing import Iterable, Protocol

from .dto import CaptureRecord, DecodeResult


class RecordSourcePort(Protocol):
    """
    Supplies archive records in capture order.
    Implementations may read WARC files, in-memory lists, or anything else.
    """

    def records(self) -> Iterable[CaptureRecord]:
        """Yield every record, including ones the pipeline will skip."""
        ...


class SegmentDecoderPort(Protocol):
    """Decompresses one marker-prefixed segment."""

    def decode(self, data: bytes) -> DecodeResult:
        """
        Return DecodeResult.success(...) or DecodeResult.failure(...).
        Implementations MUST NOT raise on malformed input and MUST NOT
        have side effects.
        """
        ...


class ProgressPort(Protocol):
    """Anything with a tqdm-like update(); receives one tick per attempted record."""

    def update(self, n: int = 1) -> object:
        ...
