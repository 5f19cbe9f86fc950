"""A small zlib stream encoder using the fixed Huffman code, plus CRC-32."""

from __future__ import annotations

import struct
import zlib

__all__ = ["zlib_compress", "crc32"]

_HASH_SIZE = 16384
_WINDOW = 32768
_MAX_MATCH = 258
_MASK32 = 0xFFFFFFFF

_LENGTH_BASE = (
    3, 4, 5, 6, 7, 8, 9, 10, 11, 13, 15, 17, 19, 23, 27, 31, 35, 43, 51, 59,
    67, 83, 99, 115, 131, 163, 195, 227, 258, 259,
)
_LENGTH_EXTRA = (
    0, 0, 0, 0, 0, 0, 0, 0, 1, 1, 1, 1, 2, 2, 2, 2, 3, 3, 3, 3,
    4, 4, 4, 4, 5, 5, 5, 5, 0,
)
_DIST_BASE = (
    1, 2, 3, 4, 5, 7, 9, 13, 17, 25, 33, 49, 65, 97, 129, 193, 257, 385, 513,
    769, 1025, 1537, 2049, 3073, 4097, 6145, 8193, 12289, 16385, 24577, 32768,
)
_DIST_EXTRA = (
    0, 0, 0, 0, 1, 1, 2, 2, 3, 3, 4, 4, 5, 5, 6, 6, 7, 7, 8, 8,
    9, 9, 10, 10, 11, 11, 12, 12, 13, 13,
)


def _bitrev(code: int, bits: int) -> int:
    result = 0
    for _ in range(bits):
        result = (result << 1) | (code & 1)
        code >>= 1
    return result


class _BitWriter:
    """Packs codes least-significant bit first into a growing byte buffer."""

    __slots__ = ("out", "_buffer", "_count")

    def __init__(self, prefix: bytes = b"") -> None:
        self.out = bytearray(prefix)
        self._buffer = 0
        self._count = 0

    def add(self, code: int, bits: int) -> None:
        self._buffer |= code << self._count
        self._count += bits
        while self._count >= 8:
            self.out.append(self._buffer & 0xFF)
            self._buffer >>= 8
            self._count -= 8

    def huffman(self, code: int, bits: int) -> None:
        self.add(_bitrev(code, bits), bits)

    def symbol(self, n: int) -> None:
        """Write a literal/length symbol with the fixed Huffman code."""
        if n <= 143:
            self.huffman(0x30 + n, 8)
        elif n <= 255:
            self.huffman(0x190 + n - 144, 9)
        elif n <= 279:
            self.huffman(n - 256, 7)
        else:
            self.huffman(0xC0 + n - 280, 8)

    def align(self) -> None:
        while self._count:
            self.add(0, 1)


def _zhash(data: bytes, pos: int) -> int:
    h = data[pos] + (data[pos + 1] << 8) + (data[pos + 2] << 16)
    h ^= (h << 3) & _MASK32
    h = (h + (h >> 5)) & _MASK32
    h ^= (h << 4) & _MASK32
    h = (h + (h >> 17)) & _MASK32
    h ^= (h << 25) & _MASK32
    h = (h + (h >> 6)) & _MASK32
    return h & (_HASH_SIZE - 1)


def _match_length(data: bytes, earlier: int, current: int, limit: int) -> int:
    limit = min(limit, _MAX_MATCH)
    length = 0
    while length < limit and data[earlier + length] == data[current + length]:
        length += 1
    return length


def _code_index(value: int, bases: tuple[int, ...]) -> int:
    index = 0
    while value > bases[index + 1] - 1:
        index += 1
    return index


def zlib_compress(data: bytes, quality: int = 8) -> bytes:
    """Compress ``data`` into a zlib stream; ``quality`` bounds the hash-chain length."""
    data = bytes(data)
    size = len(data)
    quality = max(quality, 5)
    writer = _BitWriter(b"\x78\x5e")
    writer.add(1, 1)  # final block
    writer.add(1, 2)  # fixed Huffman codes

    chains: dict[int, list[int]] = {}
    i = 0
    while i < size - 3:
        chain = chains.setdefault(_zhash(data, i), [])
        best = 3
        best_pos: int | None = None
        for pos in chain:
            if pos > i - _WINDOW:
                length = _match_length(data, pos, i, size - i)
                if length >= best:
                    best, best_pos = length, pos
        if len(chain) == 2 * quality:
            del chain[:quality]
        chain.append(i)

        if best_pos is not None:
            # Lazy matching: prefer a literal if the next position matches longer.
            for pos in chains.get(_zhash(data, i + 1), ()):
                if pos > i - (_WINDOW - 1):
                    if _match_length(data, pos, i + 1, size - i - 1) > best:
                        best_pos = None
                        break

        if best_pos is not None:
            distance = i - best_pos
            j = _code_index(best, _LENGTH_BASE)
            writer.symbol(j + 257)
            if _LENGTH_EXTRA[j]:
                writer.add(best - _LENGTH_BASE[j], _LENGTH_EXTRA[j])
            j = _code_index(distance, _DIST_BASE)
            writer.add(_bitrev(j, 5), 5)
            if _DIST_EXTRA[j]:
                writer.add(distance - _DIST_BASE[j], _DIST_EXTRA[j])
            i += best
        else:
            writer.symbol(data[i])
            i += 1

    for byte in data[i:]:
        writer.symbol(byte)
    writer.symbol(256)
    writer.align()

    writer.out += struct.pack(">I", zlib.adler32(data) & _MASK32)
    return bytes(writer.out)


def crc32(data: bytes) -> int:
    """Return the CRC-32 of ``data`` as an unsigned 32-bit integer."""
    return zlib.crc32(bytes(data)) & _MASK32