"""
WARC-backed RecordSource adapter.

Reads a (optionally gzip-compressed) WARC file with warcio and yields one
CaptureRecord per WARC record, in file order. No filtering happens here;
the runner decides which records to convert.

For HTTP response records the payload is the de-chunked response body
(warcio parses the status line and headers off for us). Records without an
HTTP envelope (warcinfo, metadata, ...) carry their raw block.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterator, Optional

from warcio.archiveiterator import ArchiveIterator  # type: ignore

from ..dto import CaptureRecord
from ..ports import RecordSourcePort


@dataclass(frozen=True)
class WarcRecordSource(RecordSourcePort):
    """
    Parameters
    ----------
    path : str | os.PathLike
        Path to a .warc or .warc.gz file.
    """

    path: str | os.PathLike

    def records(self) -> Iterator[CaptureRecord]:
        with open(self.path, "rb") as stream:
            for record in ArchiveIterator(stream):
                yield CaptureRecord(
                    record_type=record.rec_type or "",
                    target_uri=record.rec_headers.get_header("WARC-Target-URI") or "",
                    payload=record.content_stream().read(),
                    status_code=_status_code(record),
                )


def _status_code(record) -> Optional[int]:
    headers = record.http_headers
    if headers is None:
        return None
    try:
        return int(headers.get_statuscode())
    except (TypeError, ValueError):
        return None
