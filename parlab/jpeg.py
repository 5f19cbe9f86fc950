"""Baseline JPEG encoder: 4:4:4 YCbCr, standard tables, fixed Huffman codes."""

from __future__ import annotations

from pathlib import Path

import numpy as np

from .simple_formats import PathType, WriteOptions

__all__ = ["encode_jpg", "write_jpg"]

_F = np.float32

_ZIGZAG = np.array(
    [
        0, 1, 5, 6, 14, 15, 27, 28, 2, 4, 7, 13, 16, 26, 29, 42,
        3, 8, 12, 17, 25, 30, 41, 43, 9, 11, 18, 24, 31, 40, 44, 53,
        10, 19, 23, 32, 39, 45, 52, 54, 20, 22, 33, 38, 46, 51, 55, 60,
        21, 34, 37, 47, 50, 56, 59, 61, 35, 36, 48, 49, 57, 58, 62, 63,
    ],
    dtype=np.intp,
)

_DC_LUM_COUNTS = (0, 0, 1, 5, 1, 1, 1, 1, 1, 1, 0, 0, 0, 0, 0, 0, 0)
_DC_LUM_VALUES = tuple(range(12))
_AC_LUM_COUNTS = (0, 0, 2, 1, 3, 3, 2, 4, 3, 5, 5, 4, 4, 0, 0, 1, 0x7D)
_AC_LUM_VALUES = (
    0x01, 0x02, 0x03, 0x00, 0x04, 0x11, 0x05, 0x12, 0x21, 0x31, 0x41, 0x06, 0x13, 0x51, 0x61, 0x07,
    0x22, 0x71, 0x14, 0x32, 0x81, 0x91, 0xA1, 0x08, 0x23, 0x42, 0xB1, 0xC1, 0x15, 0x52, 0xD1, 0xF0,
    0x24, 0x33, 0x62, 0x72, 0x82, 0x09, 0x0A, 0x16, 0x17, 0x18, 0x19, 0x1A, 0x25, 0x26, 0x27, 0x28,
    0x29, 0x2A, 0x34, 0x35, 0x36, 0x37, 0x38, 0x39, 0x3A, 0x43, 0x44, 0x45, 0x46, 0x47, 0x48, 0x49,
    0x4A, 0x53, 0x54, 0x55, 0x56, 0x57, 0x58, 0x59, 0x5A, 0x63, 0x64, 0x65, 0x66, 0x67, 0x68, 0x69,
    0x6A, 0x73, 0x74, 0x75, 0x76, 0x77, 0x78, 0x79, 0x7A, 0x83, 0x84, 0x85, 0x86, 0x87, 0x88, 0x89,
    0x8A, 0x92, 0x93, 0x94, 0x95, 0x96, 0x97, 0x98, 0x99, 0x9A, 0xA2, 0xA3, 0xA4, 0xA5, 0xA6, 0xA7,
    0xA8, 0xA9, 0xAA, 0xB2, 0xB3, 0xB4, 0xB5, 0xB6, 0xB7, 0xB8, 0xB9, 0xBA, 0xC2, 0xC3, 0xC4, 0xC5,
    0xC6, 0xC7, 0xC8, 0xC9, 0xCA, 0xD2, 0xD3, 0xD4, 0xD5, 0xD6, 0xD7, 0xD8, 0xD9, 0xDA, 0xE1, 0xE2,
    0xE3, 0xE4, 0xE5, 0xE6, 0xE7, 0xE8, 0xE9, 0xEA, 0xF1, 0xF2, 0xF3, 0xF4, 0xF5, 0xF6, 0xF7, 0xF8,
    0xF9, 0xFA,
)
_DC_CHR_COUNTS = (0, 0, 3, 1, 1, 1, 1, 1, 1, 1, 1, 1, 0, 0, 0, 0, 0)
_DC_CHR_VALUES = tuple(range(12))
_AC_CHR_COUNTS = (0, 0, 2, 1, 2, 4, 4, 3, 4, 7, 5, 4, 4, 0, 1, 2, 0x77)
_AC_CHR_VALUES = (
    0x00, 0x01, 0x02, 0x03, 0x11, 0x04, 0x05, 0x21, 0x31, 0x06, 0x12, 0x41, 0x51, 0x07, 0x61, 0x71,
    0x13, 0x22, 0x32, 0x81, 0x08, 0x14, 0x42, 0x91, 0xA1, 0xB1, 0xC1, 0x09, 0x23, 0x33, 0x52, 0xF0,
    0x15, 0x62, 0x72, 0xD1, 0x0A, 0x16, 0x24, 0x34, 0xE1, 0x25, 0xF1, 0x17, 0x18, 0x19, 0x1A, 0x26,
    0x27, 0x28, 0x29, 0x2A, 0x35, 0x36, 0x37, 0x38, 0x39, 0x3A, 0x43, 0x44, 0x45, 0x46, 0x47, 0x48,
    0x49, 0x4A, 0x53, 0x54, 0x55, 0x56, 0x57, 0x58, 0x59, 0x5A, 0x63, 0x64, 0x65, 0x66, 0x67, 0x68,
    0x69, 0x6A, 0x73, 0x74, 0x75, 0x76, 0x77, 0x78, 0x79, 0x7A, 0x82, 0x83, 0x84, 0x85, 0x86, 0x87,
    0x88, 0x89, 0x8A, 0x92, 0x93, 0x94, 0x95, 0x96, 0x97, 0x98, 0x99, 0x9A, 0xA2, 0xA3, 0xA4, 0xA5,
    0xA6, 0xA7, 0xA8, 0xA9, 0xAA, 0xB2, 0xB3, 0xB4, 0xB5, 0xB6, 0xB7, 0xB8, 0xB9, 0xBA, 0xC2, 0xC3,
    0xC4, 0xC5, 0xC6, 0xC7, 0xC8, 0xC9, 0xCA, 0xD2, 0xD3, 0xD4, 0xD5, 0xD6, 0xD7, 0xD8, 0xD9, 0xDA,
    0xE2, 0xE3, 0xE4, 0xE5, 0xE6, 0xE7, 0xE8, 0xE9, 0xEA, 0xF2, 0xF3, 0xF4, 0xF5, 0xF6, 0xF7, 0xF8,
    0xF9, 0xFA,
)

_Y_QUANT = (
    16, 11, 10, 16, 24, 40, 51, 61, 12, 12, 14, 19, 26, 58, 60, 55,
    14, 13, 16, 24, 40, 57, 69, 56, 14, 17, 22, 29, 51, 87, 80, 62,
    18, 22, 37, 56, 68, 109, 103, 77, 24, 35, 55, 64, 81, 104, 113, 92,
    49, 64, 78, 87, 103, 121, 120, 101, 72, 92, 95, 98, 112, 100, 103, 99,
)
_UV_QUANT = (17, 18, 24, 47, 99, 99, 99, 99, 18, 21, 26, 66, 99, 99, 99, 99,
             24, 26, 56, 99, 99, 99, 99, 99, 47, 66) + (99,) * 38

_AASF = np.array(
    [1.0, 1.387039845, 1.306562965, 1.175875602, 1.0, 0.785694958, 0.541196100, 0.275899379],
    dtype=np.float32,
) * _F(2.828427125)

_HEAD0 = bytes((0xFF, 0xD8, 0xFF, 0xE0, 0, 0x10, 0x4A, 0x46, 0x49, 0x46, 0, 1, 1, 0, 0, 1, 0, 1,
                0, 0, 0xFF, 0xDB, 0, 0x84, 0))
_HEAD2 = bytes((0xFF, 0xDA, 0, 0xC, 3, 1, 0, 2, 0x11, 3, 0x11, 0, 0x3F, 0))
_FILL_BITS = (0x7F, 7)


def _huffman_table(counts: tuple[int, ...], values: tuple[int, ...]) -> list[tuple[int, int]]:
    """Build canonical (code, length) pairs indexed by symbol; unused symbols are (0, 0)."""
    table = [(0, 0)] * 256
    code = 0
    symbols = iter(values)
    for length in range(1, 17):
        for _ in range(counts[length]):
            table[next(symbols)] = (code, length)
            code += 1
        code <<= 1
    return table


_Y_DC_TABLE = _huffman_table(_DC_LUM_COUNTS, _DC_LUM_VALUES)
_Y_AC_TABLE = _huffman_table(_AC_LUM_COUNTS, _AC_LUM_VALUES)
_UV_DC_TABLE = _huffman_table(_DC_CHR_COUNTS, _DC_CHR_VALUES)
_UV_AC_TABLE = _huffman_table(_AC_CHR_COUNTS, _AC_CHR_VALUES)


class _BitWriter:
    """Writes Huffman codes most-significant bit first, stuffing a zero after 0xFF."""

    __slots__ = ("out", "_buffer", "_count")

    def __init__(self, out: bytearray) -> None:
        self.out = out
        self._buffer = 0
        self._count = 0

    def write(self, code: int, length: int) -> None:
        self._count += length
        self._buffer |= code << (24 - self._count)
        while self._count >= 8:
            byte = (self._buffer >> 16) & 0xFF
            self.out.append(byte)
            if byte == 0xFF:
                self.out.append(0)
            self._buffer = (self._buffer << 8) & 0xFFFFFF
            self._count -= 8


def _magnitude(value: int) -> tuple[int, int]:
    """Return the JPEG magnitude bits and their count for a coefficient."""
    size = max(1, abs(value).bit_length())
    if value < 0:
        value -= 1
    return value & ((1 << size) - 1), size


def _dct(d: list[np.ndarray]) -> list[np.ndarray]:
    d0, d1, d2, d3, d4, d5, d6, d7 = d
    tmp0 = d0 + d7
    tmp7 = d0 - d7
    tmp1 = d1 + d6
    tmp6 = d1 - d6
    tmp2 = d2 + d5
    tmp5 = d2 - d5
    tmp3 = d3 + d4
    tmp4 = d3 - d4

    tmp10 = tmp0 + tmp3
    tmp13 = tmp0 - tmp3
    tmp11 = tmp1 + tmp2
    tmp12 = tmp1 - tmp2

    out0 = tmp10 + tmp11
    out4 = tmp10 - tmp11
    z1 = (tmp12 + tmp13) * _F(0.707106781)
    out2 = tmp13 + z1
    out6 = tmp13 - z1

    tmp10 = tmp4 + tmp5
    tmp11 = tmp5 + tmp6
    tmp12 = tmp6 + tmp7

    z5 = (tmp10 - tmp12) * _F(0.382683433)
    z2 = tmp10 * _F(0.541196100) + z5
    z4 = tmp12 * _F(1.306562965) + z5
    z3 = tmp11 * _F(0.707106781)

    z11 = tmp7 + z3
    z13 = tmp7 - z3

    out5 = z13 + z2
    out3 = z13 - z2
    out1 = z11 + z4
    out7 = z11 - z4
    return [out0, out1, out2, out3, out4, out5, out6, out7]


def _quantized_blocks(blocks: np.ndarray, fdtbl: np.ndarray) -> list[list[int]]:
    """Transform, quantize and zigzag-order a stack of 8x8 blocks."""
    rows = _dct([blocks[:, :, k] for k in range(8)])
    blocks = np.stack(rows, axis=2)
    cols = _dct([blocks[:, k, :] for k in range(8)])
    blocks = np.stack(cols, axis=1)
    v = blocks.reshape(-1, 64) * fdtbl
    rounded = np.where(v < 0, v - _F(0.5), v + _F(0.5))
    q = np.trunc(rounded).astype(np.int64)
    du = np.empty_like(q)
    du[:, _ZIGZAG] = q
    return du.tolist()


def _encode_block(writer: _BitWriter, du: list[int], dc: int,
                  dc_table: list[tuple[int, int]], ac_table: list[tuple[int, int]]) -> int:
    diff = du[0] - dc
    if diff == 0:
        writer.write(*dc_table[0])
    else:
        bits, size = _magnitude(diff)
        writer.write(*dc_table[size])
        writer.write(bits, size)

    end = 63
    while end > 0 and du[end] == 0:
        end -= 1
    if end == 0:
        writer.write(*ac_table[0x00])
        return du[0]

    i = 1
    while i <= end:
        start = i
        while du[i] == 0:
            i += 1
        zeros = i - start
        if zeros >= 16:
            for _ in range(zeros >> 4):
                writer.write(*ac_table[0xF0])
            zeros &= 15
        bits, size = _magnitude(du[i])
        writer.write(*ac_table[(zeros << 4) + size])
        writer.write(bits, size)
        i += 1
    if end != 63:
        writer.write(*ac_table[0x00])
    return du[0]


def _quant_tables(quality: int) -> tuple[list[int], list[int]]:
    quality = quality if quality else 90
    quality = min(max(quality, 1), 100)
    scale = 5000 // quality if quality < 50 else 200 - quality * 2
    y_table = [0] * 64
    uv_table = [0] * 64
    for yq, uvq, z in zip(_Y_QUANT, _UV_QUANT, _ZIGZAG.tolist()):
        y_table[z] = min(max((yq * scale + 50) // 100, 1), 255)
        uv_table[z] = min(max((uvq * scale + 50) // 100, 1), 255)
    return y_table, uv_table


def _divisors(table: list[int]) -> np.ndarray:
    stored = np.asarray(table, dtype=np.float32)[_ZIGZAG].reshape(8, 8)
    denom = (stored * _AASF[:, None]) * _AASF[None, :]
    return (_F(1) / denom).reshape(64).astype(np.float32)


def _to_blocks(plane: np.ndarray) -> np.ndarray:
    rows, cols = plane.shape
    return plane.reshape(rows // 8, 8, cols // 8, 8).transpose(0, 2, 1, 3).reshape(-1, 8, 8)


def encode_jpg(width: int, height: int, comp: int, data, quality: int = 90,
               options: WriteOptions | None = None) -> bytes:
    """Encode 8-bit pixels as a baseline JPEG; alpha is ignored, ``quality`` is 1..100 (0 = 90)."""
    opts = options if options is not None else WriteOptions()
    if data is None or width <= 0 or height <= 0:
        raise ValueError(f"JPEG image needs data and a positive size, got {width}x{height}")
    if comp < 1 or comp > 4:
        raise ValueError(f"component count must be 1 to 4, got {comp}")
    buf = np.frombuffer(bytes(data), dtype=np.uint8)
    needed = width * height * comp
    if buf.size < needed:
        raise ValueError(f"pixel data holds {buf.size} bytes, {needed} needed")

    y_table, uv_table = _quant_tables(quality)
    fdtbl_y = _divisors(y_table)
    fdtbl_uv = _divisors(uv_table)

    out = bytearray(_HEAD0)
    out += bytes(y_table)
    out.append(1)
    out += bytes(uv_table)
    out += bytes((0xFF, 0xC0, 0, 0x11, 8, (height >> 8) & 0xFF, height & 0xFF,
                  (width >> 8) & 0xFF, width & 0xFF,
                  3, 1, 0x11, 0, 2, 0x11, 1, 3, 0x11, 1, 0xFF, 0xC4, 0x01, 0xA2, 0))
    out += bytes(_DC_LUM_COUNTS[1:]) + bytes(_DC_LUM_VALUES)
    out.append(0x10)
    out += bytes(_AC_LUM_COUNTS[1:]) + bytes(_AC_LUM_VALUES)
    out.append(1)
    out += bytes(_DC_CHR_COUNTS[1:]) + bytes(_DC_CHR_VALUES)
    out.append(0x11)
    out += bytes(_AC_CHR_COUNTS[1:]) + bytes(_AC_CHR_VALUES)
    out += _HEAD2

    image = buf[:needed].reshape(height, width, comp)
    if opts.flip_vertically:
        image = image[::-1]
    pad_rows = -height % 8
    pad_cols = -width % 8
    image = np.pad(image, ((0, pad_rows), (0, pad_cols), (0, 0)), mode="edge")
    pixels = image.astype(np.float32)
    ofs_g, ofs_b = (1, 2) if comp > 2 else (0, 0)
    r = pixels[..., 0]
    g = pixels[..., ofs_g]
    b = pixels[..., ofs_b]
    y_plane = _F(0.29900) * r + _F(0.58700) * g + _F(0.11400) * b - _F(128)
    u_plane = _F(-0.16874) * r - _F(0.33126) * g + _F(0.50000) * b
    v_plane = _F(0.50000) * r - _F(0.41869) * g - _F(0.08131) * b

    y_blocks = _quantized_blocks(_to_blocks(y_plane), fdtbl_y)
    u_blocks = _quantized_blocks(_to_blocks(u_plane), fdtbl_uv)
    v_blocks = _quantized_blocks(_to_blocks(v_plane), fdtbl_uv)

    writer = _BitWriter(out)
    dc_y = dc_u = dc_v = 0
    for y_du, u_du, v_du in zip(y_blocks, u_blocks, v_blocks):
        dc_y = _encode_block(writer, y_du, dc_y, _Y_DC_TABLE, _Y_AC_TABLE)
        dc_u = _encode_block(writer, u_du, dc_u, _UV_DC_TABLE, _UV_AC_TABLE)
        dc_v = _encode_block(writer, v_du, dc_v, _UV_DC_TABLE, _UV_AC_TABLE)
    writer.write(*_FILL_BITS)

    out += b"\xff\xd9"
    return bytes(out)


def write_jpg(path: PathType, width: int, height: int, comp: int, data, quality: int = 90,
              options: WriteOptions | None = None) -> None:
    """Write a JPEG file."""
    Path(path).write_bytes(encode_jpg(width, height, comp, data, quality, options))