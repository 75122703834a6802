"""
Capture discovery.

A capture is a pair of files sharing a base name:
  <base>.warc.gz          the records themselves
  <base>.warc.os.cdx.gz   a gzip CDX index (one header line + one line per record)

`discover_captures(path)` accepts either member of a pair, or a directory
holding any number of pairs (processed in lexical order). Everything here
runs before the first record is read, so every problem (including a truncated
or corrupt CDX index) is reported as a CaptureDiscoveryError.
"""

from __future__ import annotations

import gzip
import os
import zlib
from pathlib import Path
from typing import List

from ..dto import CapturePair
from ..errors import CaptureDiscoveryError

WARC_SUFFIX = ".warc.gz"
CDX_SUFFIX = ".warc.os.cdx.gz"


def pair_for_base(base: str) -> CapturePair:
    """Build and check the pair for `base`; both files must exist and the index must read cleanly."""
    warc_path = Path(base + WARC_SUFFIX)
    cdx_path = Path(base + CDX_SUFFIX)
    for p in (warc_path, cdx_path):
        if not p.is_file():
            raise CaptureDiscoveryError(
                f"missing {p.name}; {WARC_SUFFIX} and {CDX_SUFFIX} files must sit in the same directory"
            )

    try:
        record_count = count_cdx_records(cdx_path)
    except (OSError, EOFError, zlib.error) as e:
        raise CaptureDiscoveryError(f"unreadable CDX index {cdx_path.name}: {e}") from e

    return CapturePair(base=base, warc_path=warc_path, cdx_path=cdx_path, record_count=record_count)


def discover_captures(path: str | os.PathLike) -> List[CapturePair]:
    """Resolve a CLI path argument into capture pairs."""
    raw = os.fspath(path)

    if raw.endswith(CDX_SUFFIX):
        return [pair_for_base(raw[: -len(CDX_SUFFIX)])]
    if raw.endswith(WARC_SUFFIX):
        return [pair_for_base(raw[: -len(WARC_SUFFIX)])]

    p = Path(raw)
    if not p.exists():
        raise CaptureDiscoveryError(f"no such file or directory: {raw}")
    if not p.is_dir():
        raise CaptureDiscoveryError(
            f"invalid file type for {raw}: expected a {WARC_SUFFIX} or {CDX_SUFFIX} file, or a directory"
        )

    try:
        names = sorted(child.name for child in p.iterdir() if child.name.endswith(WARC_SUFFIX))
    except OSError as e:
        raise CaptureDiscoveryError(f"cannot read directory {raw}: {e}") from e

    if not names:
        raise CaptureDiscoveryError(f"no {WARC_SUFFIX} captures in {raw}")

    return [pair_for_base(str(p / name[: -len(WARC_SUFFIX)])) for name in names]


def count_cdx_records(cdx_path: str | os.PathLike) -> int:
    """Number of records listed in a gzip CDX index (header line excluded)."""
    lines = 0
    with gzip.open(cdx_path, "rb") as f:
        for _ in f:
            lines += 1
    return max(lines - 1, 0)
