"""
Configuration schema for the extraction pipeline.

Keep this lean: only the knobs the record pipeline and the archive writer
actually read. Logging is configured separately (see utils.init_logging).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


class ExtractConfig(BaseModel):
    """
    Centralized, validated configuration for one extraction run.
    """

    # === Output ===
    output_dir: Path = Field(
        default=Path("output"),
        description="Directory receiving one <identifier>.tar.zst per record.",
    )
    zstd_level: int = Field(
        default=19,
        ge=1,
        le=22,
        description="zstd compression level; archival workload, so favor ratio.",
    )
    entry_mtime: int = Field(
        default=0,
        ge=0,
        description="Modification time stamped on every tar entry (epoch seconds).",
    )
    entry_mode: int = Field(
        default=0o644,
        ge=0,
        le=0o7777,
        description="Permission bits stamped on every tar entry.",
    )

    # === Bundle ===
    marker: bytes = Field(
        default=b"ASH0",
        min_length=4,
        max_length=4,
        description="Magic that opens every sub-bundle inside a payload.",
    )

    # === Record filtering ===
    record_type: str = Field(
        default="response",
        description="Only records with this WARC-Type are processed.",
    )
    require_http_ok: bool = Field(
        default=True,
        description="Skip captured responses whose HTTP status is not 200.",
    )

    # === Failure policy / throughput ===
    on_io_error: Literal["halt", "continue"] = Field(
        default="halt",
        description="Storage errors either stop the whole run or fail just that record.",
    )
    workers: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Records converted concurrently; 1 keeps the run strictly sequential.",
    )
    verify_output: bool = Field(
        default=False,
        description="Read every archive back after writing and compare entries.",
    )

    class Config:
        frozen = True  # shared read-only across worker threads
