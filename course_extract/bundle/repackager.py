"""
Bundle repackager: write the four decoded segments as one .tar.zst.

The slot -> entry-name mapping is fixed; ENTRY_NAMES is the only place it
is spelled out:

    thumbnail0.tnl       8-byte checksum + JPEG, main-world preview
    course_data.cdt      main-world level data
    course_data_sub.cdt  sub-world level data
    thumbnail1.tnl       8-byte checksum + JPEG, level thumbnail

Archives are written to a sibling ".part" file and renamed into place only
after the tar stream, the zstd frame and the file have all been closed
cleanly. A failure part-way through removes the ".part" file and re-raises,
so a truncated archive never shows up under its final name.
"""

from __future__ import annotations

import io
import logging
import os
import tarfile
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

import zstandard  # type: ignore

from ..dto import ArchiveEntry
from ..errors import BundleFormatError

logger = logging.getLogger(__name__)

ENTRY_NAMES: Tuple[str, ...] = (
    "thumbnail0.tnl",
    "course_data.cdt",
    "course_data_sub.cdt",
    "thumbnail1.tnl",
)

ARCHIVE_SUFFIX = ".tar.zst"
PART_SUFFIX = ".part"


def archive_path(output_dir: Path, identifier: str) -> Path:
    """<output_dir>/<identifier>.tar.zst"""
    return Path(output_dir) / f"{identifier}{ARCHIVE_SUFFIX}"


def build_entries(decoded: Sequence[bytes]) -> List[ArchiveEntry]:
    """Pair each decoded buffer with its fixed entry name, in slot order."""
    if len(decoded) != len(ENTRY_NAMES):
        raise BundleFormatError(
            f"expected {len(ENTRY_NAMES)} decoded segments, got {len(decoded)}",
            segment_count=len(decoded),
            segment_sizes=[len(d) for d in decoded],
        )
    return [ArchiveEntry(name=name, data=bytes(data)) for name, data in zip(ENTRY_NAMES, decoded)]


def _tarinfo(entry: ArchiveEntry, mode: int, mtime: int) -> tarfile.TarInfo:
    ti = tarfile.TarInfo(name=entry.name)
    ti.size = entry.size
    ti.mode = mode & 0o7777
    ti.mtime = int(mtime)
    ti.type = tarfile.REGTYPE
    return ti


def _write_stream(fh, entries: Iterable[ArchiveEntry], *, level: int, mode: int, mtime: int) -> None:
    # Close order on exit: tar (end-of-archive blocks) -> zstd (end of frame) -> caller's file.
    cctx = zstandard.ZstdCompressor(level=level)
    with cctx.stream_writer(fh, closefd=False) as zw:
        with tarfile.open(fileobj=zw, mode="w|") as tar:
            for entry in entries:
                tar.addfile(_tarinfo(entry, mode, mtime), io.BytesIO(entry.data))


def write_course_archive(
    path: Path,
    entries: Sequence[ArchiveEntry],
    *,
    level: int = 19,
    mode: int = 0o644,
    mtime: int = 0,
) -> Path:
    """
    Write `entries` (exactly the four course slots, in order) to `path`.

    Returns the final path. Any existing archive at `path` is replaced.
    """
    names = tuple(e.name for e in entries)
    if names != ENTRY_NAMES:
        raise BundleFormatError(f"entries {names} do not match the fixed layout {ENTRY_NAMES}")

    path = Path(path)
    part = path.with_name(path.name + PART_SUFFIX)
    try:
        with open(part, "wb") as fh:
            _write_stream(fh, entries, level=level, mode=mode, mtime=mtime)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(part, path)
    except BaseException:
        try:
            part.unlink()
        except OSError:
            pass
        raise

    logger.debug("wrote %s (%d entries, %d bytes)", path, len(entries), path.stat().st_size)
    return path


def read_course_archive(path: Path) -> List[ArchiveEntry]:
    """Read an archive written by write_course_archive back into entries."""
    entries: List[ArchiveEntry] = []
    dctx = zstandard.ZstdDecompressor()
    with open(path, "rb") as fh:
        with dctx.stream_reader(fh, closefd=False) as zr:
            with tarfile.open(fileobj=zr, mode="r|") as tar:
                for member in tar:
                    f = tar.extractfile(member)
                    data = f.read() if f is not None else b""
                    entries.append(ArchiveEntry(name=member.name, data=data))
    return entries


def verify_course_archive(path: Path, expected: Sequence[ArchiveEntry]) -> bool:
    """True if the archive at `path` holds exactly `expected`, in order."""
    actual = read_course_archive(path)
    return [(e.name, e.data) for e in actual] == [(e.name, e.data) for e in expected]
