"""
Test helpers: a tiny ASH0 encoder and in-memory fakes for the ports.

The encoder writes full-depth decoding trees (every symbol coded with its
plain 9-bit / 11-bit value), which is wasteful but exercises the same tree
and bit-stream paths as real captures.
"""

from __future__ import annotations

import struct
from typing import Iterable, List, Sequence, Tuple, Union

from course_extract.dto import CaptureRecord, DecodeResult

MARKER = b"ASH0"
Token = Union[int, Tuple[int, int]]  # literal byte, or (length, distance)


class BitWriter:
    def __init__(self) -> None:
        self.bits: List[int] = []

    def write(self, value: int, nbits: int) -> None:
        for shift in range(nbits - 1, -1, -1):
            self.bits.append((value >> shift) & 1)

    def to_bytes(self, align: int = 1) -> bytes:
        bits = self.bits + [0] * (-len(self.bits) % 8)
        out = bytearray()
        for i in range(0, len(bits), 8):
            byte = 0
            for b in bits[i:i + 8]:
                byte = (byte << 1) | b
            out.append(byte)
        out += b"\0" * (-len(out) % align)
        return bytes(out)


def _write_full_tree(w: BitWriter, depth: int, leaf_bits: int, prefix: int = 0, level: int = 0) -> None:
    if level == depth:
        w.write(0, 1)
        w.write(prefix, leaf_bits)
        return
    w.write(1, 1)
    _write_full_tree(w, depth, leaf_bits, prefix << 1, level + 1)
    _write_full_tree(w, depth, leaf_bits, (prefix << 1) | 1, level + 1)


def encode_tokens(tokens: Sequence[Token], size: int) -> bytes:
    """Encode literal / (length, distance) tokens as an ASH0 blob."""
    sym = BitWriter()
    dist = BitWriter()
    _write_full_tree(sym, 9, 9)
    _write_full_tree(dist, 11, 11)
    for tok in tokens:
        if isinstance(tok, tuple):
            length, distance = tok
            sym.write(length + 0xFD, 9)
            dist.write(distance - 1, 11)
        else:
            sym.write(tok, 9)

    sym_bytes = sym.to_bytes(align=4)
    dist_off = 12 + len(sym_bytes)
    return MARKER + struct.pack(">II", size, dist_off) + sym_bytes + dist.to_bytes()


def encode_literals(data: bytes) -> bytes:
    return encode_tokens(list(data), len(data))


def course_payload(parts: Sequence[bytes], prefix: bytes = b"HTTP/1.1 200 OK\r\n\r\n") -> bytes:
    """Raw payload holding one ASH0 blob per part."""
    return prefix + b"".join(encode_literals(p) for p in parts)


COURSE_PARTS = (
    b"\x12\x34\x56\x78\0\0\0\x10" + b"\xff\xd8thumb-0\xff\xd9",
    b"course main world " * 3,
    b"course sub world " * 2,
    b"\x9a\xbc\xde\xf0\0\0\0\x10" + b"\xff\xd8thumb-1\xff\xd9",
)


class BodyDecoder:
    """Fake decoder: the 'decompressed' data is the segment body after the marker."""

    def __init__(self) -> None:
        self.calls: List[bytes] = []

    def decode(self, data: bytes) -> DecodeResult:
        self.calls.append(data)
        if not data.startswith(MARKER):
            return DecodeResult.failure("bad magic")
        return DecodeResult.success(data[len(MARKER):])


class ListSource:
    def __init__(self, records: Iterable[CaptureRecord]) -> None:
        self._records = list(records)

    def records(self) -> Iterable[CaptureRecord]:
        return iter(self._records)


def response(name: str, payload: bytes, status: int = 200, record_type: str = "response") -> CaptureRecord:
    return CaptureRecord(
        record_type=record_type,
        target_uri=f"https://levels.example.net/courses/{name}",
        payload=payload,
        status_code=status,
    )


def bundle(*bodies: bytes) -> bytes:
    return b"".join(MARKER + b for b in bodies)
