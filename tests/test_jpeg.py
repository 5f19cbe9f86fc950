import numpy as np
import pytest

from parlab.jpeg import encode_jpg, write_jpg
from parlab.simple_formats import WriteOptions

HEADER_LEN = 607
Y_TABLE = slice(25, 89)
UV_TABLE = slice(90, 154)


def _noise(height, width, comp, seed=0):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, comp), dtype=np.uint8)


def test_markers_and_fixed_header_layout():
    data = _noise(16, 16, 3)
    out = encode_jpg(16, 16, 3, data.tobytes())
    assert out[:4] == b"\xff\xd8\xff\xe0"
    assert out[6:10] == b"JFIF"
    assert out[20:22] == b"\xff\xdb"
    assert out[154:156] == b"\xff\xc0"
    assert out[HEADER_LEN - 14:HEADER_LEN - 12] == b"\xff\xda"
    assert out[-2:] == b"\xff\xd9"


def test_frame_header_holds_size():
    width, height = 300, 2
    data = _noise(height, width, 3)
    out = encode_jpg(width, height, 3, data.tobytes())
    assert out[159:163] == bytes((height >> 8, height & 0xFF, width >> 8, width & 0xFF))


def test_quality_50_uses_standard_tables():
    out = encode_jpg(8, 8, 1, bytes(64), quality=50)
    assert out[Y_TABLE][0] == 16
    assert out[UV_TABLE][0] == 17


def test_quality_100_gives_unit_tables():
    out = encode_jpg(8, 8, 1, bytes(64), quality=100)
    assert set(out[Y_TABLE]) == {1}
    assert set(out[UV_TABLE]) == {1}


def test_quality_zero_means_ninety():
    data = _noise(8, 16, 3).tobytes()
    assert encode_jpg(16, 8, 3, data, quality=0) == encode_jpg(16, 8, 3, data, quality=90)


def test_quality_is_clamped():
    data = _noise(8, 8, 3).tobytes()
    assert encode_jpg(8, 8, 3, data, quality=150) == encode_jpg(8, 8, 3, data, quality=100)
    assert encode_jpg(8, 8, 3, data, quality=-5) == encode_jpg(8, 8, 3, data, quality=1)


def test_uniform_grey_block_is_minimal():
    out = encode_jpg(8, 8, 1, bytes([128] * 64))
    assert len(out) == HEADER_LEN + 4
    assert out[HEADER_LEN:] == b"\x28\x03\xff\xd9"


def test_grey_matches_equal_rgb():
    grey = _noise(10, 13, 1, seed=3)
    rgb = np.repeat(grey, 3, axis=2)
    assert encode_jpg(13, 10, 1, grey.tobytes()) == encode_jpg(13, 10, 3, rgb.tobytes())


def test_alpha_is_ignored():
    rgb = _noise(9, 9, 3, seed=4)
    alpha = _noise(9, 9, 1, seed=5)
    rgba = np.concatenate([rgb, alpha], axis=2)
    assert encode_jpg(9, 9, 4, rgba.tobytes()) == encode_jpg(9, 9, 3, rgb.tobytes())
    grey = _noise(9, 9, 1, seed=6)
    grey_alpha = np.concatenate([grey, alpha], axis=2)
    assert encode_jpg(9, 9, 2, grey_alpha.tobytes()) == encode_jpg(9, 9, 1, grey.tobytes())


def test_flip_matches_flipped_input():
    data = _noise(12, 10, 3, seed=7)
    flipped = encode_jpg(10, 12, 3, data.tobytes(), options=WriteOptions(flip_vertically=True))
    assert flipped == encode_jpg(10, 12, 3, data[::-1].copy().tobytes())


def test_entropy_data_stuffs_ff_bytes():
    data = _noise(32, 32, 3, seed=8)
    out = encode_jpg(32, 32, 3, data.tobytes(), quality=100)
    body = out[HEADER_LEN:-2]
    assert len(body) > 0
    for index, byte in enumerate(body):
        if byte == 0xFF:
            assert index + 1 < len(body) and body[index + 1] == 0


def test_higher_quality_is_larger():
    data = _noise(32, 32, 3, seed=9).tobytes()
    assert len(encode_jpg(32, 32, 3, data, quality=95)) > len(encode_jpg(32, 32, 3, data, quality=10))


def test_accepts_numpy_array():
    data = _noise(8, 8, 3, seed=10)
    assert encode_jpg(8, 8, 3, data) == encode_jpg(8, 8, 3, data.tobytes())


@pytest.mark.parametrize(
    "width, height, comp",
    [(0, 8, 3), (8, 0, 3), (8, 8, 0), (8, 8, 5)],
)
def test_invalid_shape_rejected(width, height, comp):
    with pytest.raises(ValueError):
        encode_jpg(width, height, comp, bytes(1024))


def test_none_data_rejected():
    with pytest.raises(ValueError):
        encode_jpg(8, 8, 3, None)


def test_short_data_rejected():
    with pytest.raises(ValueError):
        encode_jpg(8, 8, 3, bytes(10))


def test_write_jpg_writes_encoded_bytes(tmp_path):
    data = _noise(8, 8, 3, seed=11).tobytes()
    path = tmp_path / "out.jpg"
    write_jpg(path, 8, 8, 3, data, 75)
    assert path.read_bytes() == encode_jpg(8, 8, 3, data, 75)