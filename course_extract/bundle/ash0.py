"""
ASH0 segment decoder.

ASH0 is an LZ-style scheme with two Huffman-like bit streams:

- symbol stream   (starts at 0x0c): 9-bit leaves, internal node ids from 0x200
- distance stream (starts at the offset stored in the header): 11-bit leaves,
  internal node ids from 0x800

Header (big-endian): b"ASH0", u32 uncompressed size, u32 distance-stream
offset whose two low bits flag "tree skipped" for each stream (bit 1 for the
symbol stream, bit 0 for the distance stream). A skipped tree is replaced by
a raw 32-bit root symbol.

Symbols below 0x100 are literal bytes; anything else copies
`symbol - 0xfd` bytes from `distance + 1` bytes back in the output.
"""

from __future__ import annotations

import struct
from typing import List, Tuple

from ..dto import DecodeResult
from .splitter import ASH0_MARKER

_HEADER = struct.Struct(">4sII")

_SYMBOL_BASE = 0x200
_SYMBOL_BITS = 9
_DISTANCE_BASE = 0x800
_DISTANCE_BITS = 11
_LITERAL_LIMIT = 0x100
_COPY_BIAS = 0xFD


class Ash0FormatError(ValueError):
    """Malformed ASH0 stream."""


class _BitReader:
    """MSB-first bit reader over an immutable buffer."""

    def __init__(self, buf: bytes) -> None:
        self._buf = buf
        self._nbits = len(buf) * 8
        self.off = 0

    def read(self, nbits: int) -> int:
        off = self.off
        if off + nbits > self._nbits:
            raise Ash0FormatError(f"bit stream exhausted at bit {off} (wanted {nbits} more)")
        buf = self._buf
        value = 0
        for pos in range(off, off + nbits):
            value = (value << 1) | ((buf[pos >> 3] >> (7 - (pos & 7))) & 1)
        self.off = off + nbits
        return value


class _TreeStream(_BitReader):
    """Bit stream prefixed by a serialized decoding tree."""

    def __init__(self, buf: bytes, base: int, skip_tree: bool, leaf_bits: int) -> None:
        super().__init__(buf)
        self.base = base
        self.nodes: List[List[int]] = []
        if skip_tree:
            self.root = self.read(32)
        else:
            self.root = self._read_tree(leaf_bits)

    def _read_tree(self, leaf_bits: int) -> int:
        # Pre-order: 1 = internal node (left, right follow), 0 = leaf + value.
        # Node ids are handed out in creation order starting at `base`.
        pending: List[int] = []
        while True:
            if self.read(1):
                idx = len(self.nodes)
                if idx >= self.base:
                    raise Ash0FormatError("decoding tree has too many nodes")
                self.nodes.append([-1, -1])
                pending.append(idx)
                continue

            value = self.read(leaf_bits)
            while pending:
                node = self.nodes[pending[-1]]
                if node[0] < 0:
                    node[0] = value
                    break
                node[1] = value
                value = self.base + pending.pop()
            else:
                return value

    def next_symbol(self) -> int:
        idx = self.root
        while idx >= self.base:
            pos = idx - self.base
            if pos >= len(self.nodes):
                raise Ash0FormatError(f"reference to undefined tree node {idx:#x}")
            idx = self.nodes[pos][self.read(1)]
        return idx


def decompress_ash0(data: bytes) -> Tuple[bytes, int]:
    """
    Decompress one ASH0 blob.

    Returns (decompressed, compressed_length). Raises Ash0FormatError on
    malformed input.
    """
    if len(data) < _HEADER.size:
        raise Ash0FormatError(f"truncated header ({len(data)} bytes)")
    magic, size, dist_word = _HEADER.unpack_from(data)
    if magic != ASH0_MARKER:
        raise Ash0FormatError(f"bad magic {magic!r}")

    dist_off = dist_word & ~3
    if not _HEADER.size <= dist_off <= len(data):
        raise Ash0FormatError(f"distance stream offset {dist_off:#x} out of range")

    symbols = _TreeStream(data[_HEADER.size:dist_off], _SYMBOL_BASE, bool(dist_word & 2), _SYMBOL_BITS)
    distances = _TreeStream(data[dist_off:], _DISTANCE_BASE, bool(dist_word & 1), _DISTANCE_BITS)

    out = bytearray()
    while len(out) < size:
        sym = symbols.next_symbol()
        if sym < _LITERAL_LIMIT:
            out.append(sym)
            continue

        back = distances.next_symbol() + 1
        length = sym - _COPY_BIAS
        if back > len(out):
            raise Ash0FormatError(f"back-reference {back} before start of output ({len(out)} bytes)")
        # byte-by-byte: source and destination may overlap
        for _ in range(length):
            out.append(out[-back])

    compressed_length = dist_off + (distances.off + 7) // 8
    return bytes(out[:size]), compressed_length


class Ash0Decoder:
    """SegmentDecoderPort implementation backed by decompress_ash0."""

    def decode(self, data: bytes) -> DecodeResult:
        try:
            out, _ = decompress_ash0(data)
        except Ash0FormatError as e:
            return DecodeResult.failure(str(e))
        return DecodeResult.success(out)
