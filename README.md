# parlab

A small library for saving 8-bit and floating-point pixel buffers as
image files, with no image library required beyond numpy.

- **PNG** (`parlab.png`): `encode_png` and `write_png`. Each row gets
  the PNG filter (none, sub, up, average, Paeth) with the smallest sum
  of absolute filtered values, unless a filter is forced. `paeth`
  exposes the Paeth predictor.
- **JPEG** (`parlab.jpeg`): `encode_jpg` and `write_jpg`, baseline
  JPEG with 4:4:4 YCbCr and the standard quantisation and Huffman
  tables. `quality` runs from 1 to 100; 0 means 90. Alpha is ignored.
- **BMP, TGA and Radiance HDR** (`parlab.simple_formats`):
  `encode_bmp` / `write_bmp` (24-bit; grey is expanded to RGB, RGBA is
  blended onto a pink background), `encode_tga` / `write_tga`
  (run-length encoded by default), and `encode_hdr` / `write_hdr`
  (linear float data in RGBE; alpha is dropped, grey is replicated).
  `linear_to_rgbe` converts one RGB triple to its four RGBE bytes.
- **Compression** (`parlab.deflate`): `zlib_compress(data, quality=8)`
  produces a zlib stream using the fixed Huffman code; `quality` bounds
  the hash-chain length (at least 5). `crc32` returns the unsigned
  CRC-32 of a byte string.
- **Timing** (`parlab.timer.Timer`): `start`, `stop` and `elapsed`
  (seconds); it also works as a context manager. `elapsed` raises
  `RuntimeError` until the timer has been started and stopped.

## Installation

```
pip install .
```

Running the tests requires the `test` extra:

```
pip install ".[test]"
pytest
```

## Usage

```python
from parlab.png import write_png
from parlab.jpeg import write_jpg
from parlab.simple_formats import WriteOptions, write_tga
from parlab.timer import Timer

width, height = 256, 128
pixels = bytes((x + y) & 0xFF for y in range(height) for x in range(width))

with Timer() as timer:
    write_png("gradient.png", width, height, 1, pixels, width)
print(f"{timer.elapsed() * 1000:.0f} ms")

write_jpg("gradient.jpg", width, height, 1, pixels, quality=85)
write_tga("gradient.tga", width, height, 1, pixels,
          WriteOptions(tga_with_rle=False, flip_vertically=True))
```

The 8-bit writers take pixel bytes stored left to right, top to
bottom, with `comp` interleaved channels per pixel (1 = grey,
2 = grey + alpha, 3 = RGB, 4 = RGBA); `encode_hdr` takes float values
in the same layout. For PNG, `stride` is the byte distance between the
starts of consecutive rows (0 means rows are packed). The `encode_*`
functions return the file contents as `bytes`; the `write_*` functions
save them to a path.

`WriteOptions` holds the shared settings:

- `flip_vertically` (default `False`): write the rows bottom to top.
- `tga_with_rle` (default `True`): run-length encode TGA output.
- `png_compression_level` (default `8`): the `quality` passed to
  `zlib_compress`.
- `force_png_filter` (default `-1`): 0 to 4 forces one PNG filter for
  every row; any other value lets the encoder choose per row.

Negative sizes, channel counts outside 1 to 4, too little pixel data,
and (for HDR and JPEG) a zero size raise `ValueError`.

## Limits

The package only writes images; it does not read or decode them. It
is a library with no command-line program, and it contains no
rendering or numerical workloads of its own: pixel data must come from
the caller.