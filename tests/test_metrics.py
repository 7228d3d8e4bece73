import math

import numpy as np
import pytest

from img_rlsf.errors import InvalidArgumentError
from img_rlsf.image import Image
from img_rlsf.metrics import calculate_snr, mse, psnr


def test_identical_images():
    img = np.full((30, 30, 3), 77, dtype=np.uint8)
    q = calculate_snr(img, img.copy())
    assert q.snr == math.inf and q.psnr == math.inf
    assert q.rmse == 0.0 and q.mae == 0.0
    assert psnr(img, img) == math.inf


def test_known_offset():
    ref = np.full((30, 30, 3), 100, dtype=np.uint8)
    test = np.full((30, 30, 3), 110, dtype=np.uint8)

    q = calculate_snr(ref, test)
    assert q.snr == pytest.approx(20.0)
    assert q.psnr == pytest.approx(10.0 * math.log10(255.0 ** 2 / 100.0), rel=1e-6)
    assert q.rmse == pytest.approx(10.0)
    assert q.mae == pytest.approx(10.0)
    assert mse(ref, test) == pytest.approx(100.0)


def test_border_is_ignored():
    ref = np.full((30, 30, 3), 100, dtype=np.uint8)
    test = ref.copy()
    test[:10] = 0
    assert mse(ref, test, border=10) == 0.0
    assert mse(Image.from_array(ref), Image.from_array(test), border=0) > 0.0


def test_invalid_inputs():
    rgb = np.zeros((30, 30, 3), dtype=np.uint8)
    with pytest.raises(InvalidArgumentError):
        calculate_snr(rgb, np.zeros((30, 30), dtype=np.uint8))
    with pytest.raises(InvalidArgumentError):
        calculate_snr(rgb, np.zeros((31, 30, 3), dtype=np.uint8))
    with pytest.raises(InvalidArgumentError):
        psnr(rgb, rgb, border=15)
