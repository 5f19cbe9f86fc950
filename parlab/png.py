"""PNG encoder with per-row filter selection and the built-in deflate stream."""

from __future__ import annotations

import struct
from pathlib import Path

import numpy as np

from .deflate import crc32, zlib_compress
from .simple_formats import PathType, WriteOptions

__all__ = ["paeth", "encode_png", "write_png"]

_SIGNATURE = bytes((137, 80, 78, 71, 13, 10, 26, 10))
_COLOR_TYPES = {1: 0, 2: 4, 3: 2, 4: 6}
_FILTER_COUNT = 5


def paeth(a: int, b: int, c: int) -> int:
    """Return the Paeth predictor of left ``a``, above ``b`` and upper-left ``c``."""
    p = a + b - c
    pa, pb, pc = abs(p - a), abs(p - b), abs(p - c)
    if pa <= pb and pa <= pc:
        return a & 0xFF
    if pb <= pc:
        return b & 0xFF
    return c & 0xFF


def _paeth_array(a: np.ndarray, b: np.ndarray, c: np.ndarray) -> np.ndarray:
    p = a + b - c
    pa, pb, pc = np.abs(p - a), np.abs(p - b), np.abs(p - c)
    return np.where((pa <= pb) & (pa <= pc), a, np.where(pb <= pc, b, c))


def _shift(row: np.ndarray, n: int) -> np.ndarray:
    shifted = np.zeros_like(row)
    if row.size > n:
        shifted[n:] = row[:-n]
    return shifted


def _filter_row(cur: np.ndarray, prior: np.ndarray, n: int, filter_type: int) -> np.ndarray:
    """Apply one PNG filter; the first row is filtered against a row of zeros."""
    up = prior
    left = _shift(cur, n)
    if filter_type == 0:
        result = cur
    elif filter_type == 1:
        result = cur - left
    elif filter_type == 2:
        result = cur - up
    elif filter_type == 3:
        result = cur - ((left + up) >> 1)
    else:
        result = cur - _paeth_array(left, up, _shift(up, n))
    return (result & 0xFF).astype(np.uint8)


def _cost(filtered: np.ndarray) -> int:
    return int(np.abs(filtered.view(np.int8).astype(np.int32)).sum())


def _pixel_rows(width: int, height: int, comp: int, data, stride: int) -> np.ndarray:
    if width < 0 or height < 0:
        raise ValueError(f"image size must not be negative: {width}x{height}")
    if comp not in _COLOR_TYPES:
        raise ValueError(f"component count must be 1 to 4, got {comp}")
    row_len = width * comp
    if stride == 0:
        stride = row_len
    if stride < row_len:
        raise ValueError(f"stride {stride} is shorter than a row of {row_len} bytes")
    buf = np.frombuffer(bytes(data), dtype=np.uint8)
    needed = (height - 1) * stride + row_len if height else 0
    if buf.size < needed:
        raise ValueError(f"pixel data holds {buf.size} bytes, {needed} needed")
    rows = np.zeros((height, row_len), dtype=np.int32)
    for j in range(height):
        rows[j] = buf[j * stride:j * stride + row_len]
    return rows


def _chunk(tag: bytes, payload: bytes) -> bytes:
    body = tag + payload
    return struct.pack(">I", len(payload)) + body + struct.pack(">I", crc32(body))


def encode_png(width: int, height: int, comp: int, data, stride: int = 0,
               options: WriteOptions | None = None) -> bytes:
    """Encode 8-bit pixels as a PNG; ``stride`` is the byte distance between rows (0 = packed)."""
    opts = options if options is not None else WriteOptions()
    rows = _pixel_rows(width, height, comp, data, stride)
    if opts.flip_vertically:
        rows = rows[::-1]
    forced = opts.force_png_filter
    if forced >= _FILTER_COUNT:
        forced = -1

    filtered = bytearray()
    prior = np.zeros(width * comp, dtype=np.int32)
    for cur in rows:
        if forced > -1:
            chosen, line = forced, _filter_row(cur, prior, comp, forced)
        else:
            candidates = [_filter_row(cur, prior, comp, f) for f in range(_FILTER_COUNT)]
            chosen = int(np.argmin([_cost(line) for line in candidates]))
            line = candidates[chosen]
        filtered.append(chosen)
        filtered += line.tobytes()
        prior = cur

    compressed = zlib_compress(bytes(filtered), opts.png_compression_level)
    header = struct.pack(">IIBBBBB", width, height, 8, _COLOR_TYPES[comp], 0, 0, 0)
    return (
        _SIGNATURE
        + _chunk(b"IHDR", header)
        + _chunk(b"IDAT", compressed)
        + _chunk(b"IEND", b"")
    )


def write_png(path: PathType, width: int, height: int, comp: int, data, stride: int = 0,
              options: WriteOptions | None = None) -> None:
    """Write a PNG file."""
    Path(path).write_bytes(encode_png(width, height, comp, data, stride, options))