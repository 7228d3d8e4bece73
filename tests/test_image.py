import numpy as np
import pytest

from img_rlsf.errors import InvalidArgumentError
from img_rlsf.image import Image, PixelKind, alloc_img, is_rgb_img, img_dims_agree


@pytest.mark.parametrize("arr, kind", [
    (np.zeros((4, 5, 3), dtype=np.uint8), PixelKind.RGB),
    (np.full((4, 5), 7, dtype=np.uint8), PixelKind.GRAY),
    (np.ones((4, 5), dtype=np.uint8), PixelKind.BIN),
    (np.zeros((4, 5), dtype=np.int32), PixelKind.INT_1B),
    (np.zeros((4, 5, 3), dtype=np.int32), PixelKind.INT_3B),
    (np.zeros((4, 5), dtype=np.float64), PixelKind.DBL_1B),
    (np.zeros((4, 5, 3), dtype=np.float64), PixelKind.DBL_3B),
])
def test_from_array_infers_kind(arr, kind):
    img = Image.from_array(arr)
    assert img.kind is kind
    assert (img.num_rows, img.num_cols) == (4, 5)
    assert img.num_bands == kind.num_bands


def test_from_array_rejects_unknown_layout():
    with pytest.raises(InvalidArgumentError):
        Image.from_array(np.zeros((4, 5, 4), dtype=np.uint8))
    with pytest.raises(InvalidArgumentError):
        Image(PixelKind.RGB, np.zeros((4, 5), dtype=np.uint8))


def test_alloc_img_is_zero_filled():
    img = alloc_img(PixelKind.RGB, 3, 7)
    assert img.shape == (3, 7, 3)
    assert img.write_view().dtype == np.uint8
    assert not img.write_view().any()

    with pytest.raises(InvalidArgumentError):
        alloc_img(PixelKind.RGB, 0, 7)


def test_read_view_is_read_only():
    img = alloc_img(PixelKind.RGB, 2, 2)
    view = img.read_view()
    with pytest.raises(ValueError):
        view[0, 0, 0] = 1
    img.write_view()[0, 0, 0] = 9
    assert view[0, 0, 0] == 9


def test_clone_and_free():
    img = Image.from_array(np.full((2, 3, 3), 5, dtype=np.uint8))
    copy = img.clone()
    img.free()
    assert img.data is None
    assert not is_rgb_img(img)
    assert is_rgb_img(copy)
    assert copy.write_view()[1, 2, 0] == 5


def test_is_rgb_and_dims():
    assert is_rgb_img(np.zeros((2, 2, 3), dtype=np.uint8))
    assert not is_rgb_img(np.zeros((2, 2, 3), dtype=np.float64))
    assert not is_rgb_img(np.zeros((2, 2), dtype=np.uint8))
    assert not is_rgb_img("image.png")
    assert img_dims_agree(alloc_img(PixelKind.RGB, 2, 3), alloc_img(PixelKind.GRAY, 2, 3))
