"""
Segment splitter: cut a raw payload into marker-delimited segments.

A payload holds several sub-bundles, each opening with the same 4-byte
magic. Bytes before the first marker (HTTP leftovers, padding) are ignored.
Each segment keeps its marker so the decoder can read its header.
"""

from __future__ import annotations

import logging
from typing import List

from ..dto import Segment
from ..errors import BundleFormatError

logger = logging.getLogger(__name__)

ASH0_MARKER = b"ASH0"
SEGMENT_COUNT = 4


def find_markers(payload: bytes, marker: bytes = ASH0_MARKER) -> List[int]:
    """
    Return every offset where `marker` starts, left to right.

    bytes.find only reports complete matches, so a partial marker in the
    last len(marker) - 1 bytes is never returned. Overlapping occurrences
    are all reported, matching a byte-by-byte scan.
    """
    if not marker:
        raise ValueError("marker must not be empty")

    positions: List[int] = []
    i = payload.find(marker)
    while i != -1:
        positions.append(i)
        i = payload.find(marker, i + 1)
    return positions


def split_bundle(payload: bytes, marker: bytes = ASH0_MARKER) -> List[Segment]:
    """
    Split `payload` at every marker occurrence.

    Raises
    ------
    BundleFormatError
        If the marker never occurs. We never fall back to one segment
        covering the whole buffer.
    """
    positions = find_markers(payload, marker)
    if not positions:
        raise BundleFormatError(f"no {marker!r} marker in {len(payload)}-byte payload", segment_count=0)

    ends = positions[1:] + [len(payload)]
    return [
        Segment(index=idx, offset=start, data=bytes(payload[start:end]), marker_len=len(marker))
        for idx, (start, end) in enumerate(zip(positions, ends))
    ]


def split_course_bundle(payload: bytes, marker: bytes = ASH0_MARKER, expected: int = SEGMENT_COUNT) -> List[Segment]:
    """Split and require exactly `expected` segments."""
    segments = split_bundle(payload, marker)
    if len(segments) != expected:
        sizes = [len(s) for s in segments]
        logger.debug("segment sizes: %s", sizes)
        raise BundleFormatError(
            f"expected {expected} segments, found {len(segments)}",
            segment_count=len(segments),
            segment_sizes=sizes,
        )
    return segments
