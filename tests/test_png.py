import struct
import zlib

import pytest

from parlab.png import encode_png, paeth, write_png
from parlab.simple_formats import WriteOptions


def _chunks(png):
    pos = 8
    out = []
    while pos < len(png):
        (length,) = struct.unpack(">I", png[pos:pos + 4])
        tag = png[pos + 4:pos + 8]
        payload = png[pos + 8:pos + 8 + length]
        (crc,) = struct.unpack(">I", png[pos + 8 + length:pos + 12 + length])
        out.append((tag, payload, crc))
        pos += 12 + length
    return out


def _decode(png):
    chunks = _chunks(png)
    width, height, depth, ctype = struct.unpack(">IIBB", chunks[0][1][:10])
    comp = {0: 1, 4: 2, 2: 3, 6: 4}[ctype]
    raw = zlib.decompress(b"".join(p for t, p, _ in chunks if t == b"IDAT"))
    row_len = width * comp
    prior = bytearray(row_len)
    rows, filters = [], []
    for j in range(height):
        start = j * (row_len + 1)
        ftype = raw[start]
        filters.append(ftype)
        line = bytearray(raw[start + 1:start + 1 + row_len])
        for i in range(row_len):
            a = line[i - comp] if i >= comp else 0
            b = prior[i]
            c = prior[i - comp] if i >= comp else 0
            if ftype == 1:
                line[i] = (line[i] + a) & 0xFF
            elif ftype == 2:
                line[i] = (line[i] + b) & 0xFF
            elif ftype == 3:
                line[i] = (line[i] + ((a + b) >> 1)) & 0xFF
            elif ftype == 4:
                line[i] = (line[i] + paeth(a, b, c)) & 0xFF
        rows.append(bytes(line))
        prior = line
    return width, height, comp, b"".join(rows), filters


def _image(width, height, comp):
    return bytes((i * 37 + (i // 5) * 11) % 256 for i in range(width * height * comp))


def test_signature_and_chunk_order():
    png = encode_png(3, 2, 3, _image(3, 2, 3))
    assert png[:8] == bytes((137, 80, 78, 71, 13, 10, 26, 10))
    assert [t for t, _, _ in _chunks(png)] == [b"IHDR", b"IDAT", b"IEND"]


def test_chunk_crcs_are_valid():
    png = encode_png(4, 4, 4, _image(4, 4, 4))
    for tag, payload, crc in _chunks(png):
        assert crc == zlib.crc32(tag + payload) & 0xFFFFFFFF


@pytest.mark.parametrize("comp,ctype", [(1, 0), (2, 4), (3, 2), (4, 6)])
def test_ihdr_color_type(comp, ctype):
    png = encode_png(5, 3, comp, _image(5, 3, comp))
    header = _chunks(png)[0][1]
    assert struct.unpack(">IIBBBBB", header) == (5, 3, 8, ctype, 0, 0, 0)


@pytest.mark.parametrize("comp", [1, 2, 3, 4])
def test_round_trip_auto_filter(comp):
    data = _image(9, 7, comp)
    assert _decode(encode_png(9, 7, comp, data)) [:4] == (9, 7, comp, data)


@pytest.mark.parametrize("forced", [0, 1, 2, 3, 4])
def test_forced_filter_round_trip(forced):
    data = _image(6, 5, 3)
    width, height, comp, pixels, filters = _decode(
        encode_png(6, 5, 3, data, 0, WriteOptions(force_png_filter=forced))
    )
    assert pixels == data
    assert filters == [forced] * 5


def test_filter_five_or_more_means_automatic():
    data = _image(6, 5, 1)
    auto = encode_png(6, 5, 1, data)
    assert encode_png(6, 5, 1, data, 0, WriteOptions(force_png_filter=7)) == auto


def test_auto_filters_are_in_range():
    *_, filters = _decode(encode_png(8, 8, 3, _image(8, 8, 3)))
    assert all(0 <= f <= 4 for f in filters)


def test_stride_selects_sub_rectangle():
    width, height, comp, stride = 3, 4, 1, 7
    buf = bytes(range(stride * height))
    expected = b"".join(buf[j * stride:j * stride + width] for j in range(height))
    decoded = _decode(encode_png(width, height, comp, buf, stride))
    assert decoded[3] == expected
    assert encode_png(width, height, comp, expected) == encode_png(width, height, comp, buf, stride)


def test_flip_vertically_reverses_rows():
    data = _image(4, 3, 2)
    rows = [data[j * 8:(j + 1) * 8] for j in range(3)]
    decoded = _decode(encode_png(4, 3, 2, data, 0, WriteOptions(flip_vertically=True)))
    assert decoded[3] == b"".join(reversed(rows))


def test_compression_level_keeps_content():
    data = bytes(64) + _image(8, 8, 1)
    for level in (1, 8, 20):
        png = encode_png(8, 16, 1, data, 0, WriteOptions(png_compression_level=level))
        assert _decode(png)[3] == data


def test_write_png_matches_encoder(tmp_path):
    data = _image(5, 5, 3)
    path = tmp_path / "out.png"
    write_png(path, 5, 5, 3, data)
    assert path.read_bytes() == encode_png(5, 5, 3, data)


def test_invalid_component_count():
    with pytest.raises(ValueError):
        encode_png(2, 2, 5, bytes(20))


def test_short_data_rejected():
    with pytest.raises(ValueError):
        encode_png(4, 4, 3, bytes(10))


def test_short_stride_rejected():
    with pytest.raises(ValueError):
        encode_png(4, 2, 3, bytes(100), 5)


def test_paeth_examples():
    assert paeth(1, 2, 3) == 1
    assert paeth(0, 7, 0) == 7
    assert paeth(9, 0, 0) == 9


@pytest.mark.parametrize("a,b,c", [(10, 200, 30), (255, 0, 128), (5, 5, 5), (100, 50, 200)])
def test_paeth_picks_a_neighbour(a, b, c):
    assert paeth(a, b, c) in (a, b, c)