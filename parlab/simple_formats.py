"""Encoders for uncompressed and lightly compressed image formats: BMP, TGA and Radiance HDR."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import Iterator, Sequence, Union

import numpy as np

__all__ = [
    "WriteOptions",
    "encode_bmp",
    "write_bmp",
    "encode_tga",
    "write_tga",
    "linear_to_rgbe",
    "encode_hdr",
    "write_hdr",
]

PathType = Union[str, "PathLike[str]"]

_PINK = (255, 0, 255)
_HDR_HEADER = b"#?RADIANCE\n# Written by parlab\nFORMAT=32-bit_rle_rgbe\n"
_HDR_EXPOSURE = "EXPOSURE=          1.0000000000000\n\n-Y {height} +X {width}\n"


@dataclass
class WriteOptions:
    """Settings shared by the image writers."""

    tga_with_rle: bool = True
    png_compression_level: int = 8
    force_png_filter: int = -1
    flip_vertically: bool = False


def _resolve(options: WriteOptions | None) -> WriteOptions:
    return options if options is not None else WriteOptions()


def _check_shape(width: int, height: int, comp: int) -> None:
    if width < 0 or height < 0:
        raise ValueError(f"image size must not be negative: {width}x{height}")
    if comp not in (1, 2, 3, 4):
        raise ValueError(f"component count must be 1 to 4, got {comp}")


def _pixel_buffer(width: int, height: int, comp: int, data) -> bytes:
    _check_shape(width, height, comp)
    buf = bytes(data)
    needed = width * height * comp
    if len(buf) < needed:
        raise ValueError(f"pixel data holds {len(buf)} bytes, {needed} needed")
    return buf


def _rows(buf: bytes, width: int, height: int, comp: int, bottom_up: bool) -> Iterator[list[bytes]]:
    """Yield rows of pixels, each pixel a bytes object of ``comp`` channels."""
    stride = width * comp
    order = range(height - 1, -1, -1) if bottom_up else range(height)
    for j in order:
        row = buf[j * stride:(j + 1) * stride]
        yield [row[i:i + comp] for i in range(0, stride, comp)]


def _trunc_div(numerator: int, denominator: int) -> int:
    quotient = abs(numerator) // denominator
    return -quotient if numerator < 0 else quotient


def _encode_pixel(pixel: bytes, write_alpha: bool, expand_mono: bool) -> bytes:
    """Encode one pixel in blue-green-red order, as BMP and TGA store it."""
    comp = len(pixel)
    if comp <= 2:
        color = bytes((pixel[0],) * 3) if expand_mono else pixel[:1]
    elif comp == 4 and not write_alpha:
        alpha = pixel[3]
        blended = [bg + _trunc_div((c - bg) * alpha, 255) for c, bg in zip(pixel[:3], _PINK)]
        color = bytes((blended[2] & 0xFF, blended[1] & 0xFF, blended[0] & 0xFF))
    else:
        color = bytes((pixel[2], pixel[1], pixel[0]))
    if write_alpha:
        return color + pixel[comp - 1:comp]
    return color


def encode_bmp(width: int, height: int, comp: int, data, options: WriteOptions | None = None) -> bytes:
    """Encode 8-bit pixels as a 24-bit BMP; grey is expanded, alpha is blended onto pink."""
    opts = _resolve(options)
    buf = _pixel_buffer(width, height, comp, data)
    pad = (-width * 3) & 3
    file_size = (14 + 40 + (width * 3 + pad) * height) & 0xFFFFFFFF
    out = bytearray(
        struct.pack(
            "<2sIHHIIIIHHIIIIII",
            b"BM", file_size, 0, 0, 14 + 40,
            40, width, height, 1, 24, 0, 0, 0, 0, 0, 0,
        )
    )
    padding = bytes(pad)
    for row in _rows(buf, width, height, comp, bottom_up=not opts.flip_vertically):
        out += b"".join(_encode_pixel(p, False, True) for p in row)
        out += padding
    return bytes(out)


def write_bmp(path: PathType, width: int, height: int, comp: int, data,
              options: WriteOptions | None = None) -> None:
    """Write a BMP file."""
    Path(path).write_bytes(encode_bmp(width, height, comp, data, options))


def _tga_rle_row(row: list[bytes], has_alpha: bool) -> bytes:
    out = bytearray()
    count = len(row)
    i = 0
    while i < count:
        begin = row[i]
        length = 1
        differs = True
        if i < count - 1:
            length = 2
            differs = row[i + 1] != begin
            if differs:
                prev = i
                for k in range(i + 2, count):
                    if length >= 128:
                        break
                    if row[prev] != row[k]:
                        prev += 1
                        length += 1
                    else:
                        length -= 1
                        break
            else:
                for k in range(i + 2, count):
                    if length >= 128:
                        break
                    if row[k] == begin:
                        length += 1
                    else:
                        break
        if differs:
            out.append(length - 1)
            out += b"".join(_encode_pixel(p, has_alpha, False) for p in row[i:i + length])
        else:
            out.append((length - 129) & 0xFF)
            out += _encode_pixel(begin, has_alpha, False)
        i += length
    return bytes(out)


def encode_tga(width: int, height: int, comp: int, data, options: WriteOptions | None = None) -> bytes:
    """Encode 8-bit pixels as a TGA image, run-length encoded unless disabled."""
    opts = _resolve(options)
    buf = _pixel_buffer(width, height, comp, data)
    has_alpha = comp in (2, 4)
    color_bytes = comp - 1 if has_alpha else comp
    image_type = 3 if color_bytes < 2 else 2
    if opts.tga_with_rle:
        image_type += 8
    out = bytearray(
        struct.pack(
            "<BBBHHBHHHHBB",
            0, 0, image_type, 0, 0, 0, 0, 0,
            width & 0xFFFF, height & 0xFFFF,
            (color_bytes + has_alpha) * 8, has_alpha * 8,
        )
    )
    for row in _rows(buf, width, height, comp, bottom_up=not opts.flip_vertically):
        if opts.tga_with_rle:
            out += _tga_rle_row(row, has_alpha)
        else:
            out += b"".join(_encode_pixel(p, has_alpha, False) for p in row)
    return bytes(out)


def write_tga(path: PathType, width: int, height: int, comp: int, data,
              options: WriteOptions | None = None) -> None:
    """Write a TGA file."""
    Path(path).write_bytes(encode_tga(width, height, comp, data, options))


def linear_to_rgbe(linear: Sequence[float]) -> bytes:
    """Convert a linear RGB triple to the four shared-exponent RGBE bytes."""
    red, green, blue = (np.float32(v) for v in linear)
    maxcomp = max(red, green, blue)
    if maxcomp < np.float32(1e-32):
        return bytes(4)
    mantissa, exponent = math.frexp(float(maxcomp))
    normalize = np.float32(mantissa) * np.float32(256.0) / maxcomp
    return bytes(
        (
            int(red * normalize) & 0xFF,
            int(green * normalize) & 0xFF,
            int(blue * normalize) & 0xFF,
            (exponent + 128) & 0xFF,
        )
    )


def _hdr_rle_plane(plane: bytes) -> bytes:
    out = bytearray()
    width = len(plane)
    x = 0
    while x < width:
        run = x
        while run + 2 < width:
            if plane[run] == plane[run + 1] == plane[run + 2]:
                break
            run += 1
        if run + 2 >= width:
            run = width
        while x < run:
            length = min(run - x, 128)
            out.append(length)
            out += plane[x:x + length]
            x += length
        if run + 2 < width:
            while run < width and plane[run] == plane[x]:
                run += 1
            while x < run:
                length = min(run - x, 127)
                out.append(length + 128)
                out.append(plane[x])
                x += length
    return bytes(out)


def _hdr_scanline(pixels: np.ndarray) -> bytes:
    width, comp = pixels.shape
    rgbe = [linear_to_rgbe(p[:3] if comp >= 3 else (p[0], p[0], p[0])) for p in pixels]
    if width < 8 or width >= 32768:
        return b"".join(rgbe)
    out = bytearray((2, 2, (width >> 8) & 0xFF, width & 0xFF))
    for channel in range(4):
        out += _hdr_rle_plane(bytes(e[channel] for e in rgbe))
    return bytes(out)


def encode_hdr(width: int, height: int, comp: int, data, options: WriteOptions | None = None) -> bytes:
    """Encode linear float pixels as a Radiance RGBE image; alpha is dropped, grey replicated."""
    opts = _resolve(options)
    if data is None or width <= 0 or height <= 0:
        raise ValueError(f"HDR image needs data and a positive size, got {width}x{height}")
    _check_shape(width, height, comp)
    values = np.asarray(data, dtype=np.float32).ravel()
    needed = width * height * comp
    if values.size < needed:
        raise ValueError(f"pixel data holds {values.size} values, {needed} needed")
    grid = values[:needed].reshape(height, width, comp)
    out = bytearray(_HDR_HEADER)
    out += _HDR_EXPOSURE.format(height=height, width=width).encode("ascii")
    order = range(height - 1, -1, -1) if opts.flip_vertically else range(height)
    for j in order:
        out += _hdr_scanline(grid[j])
    return bytes(out)


def write_hdr(path: PathType, width: int, height: int, comp: int, data,
              options: WriteOptions | None = None) -> None:
    """Write a Radiance HDR file."""
    Path(path).write_bytes(encode_hdr(width, height, comp, data, options))