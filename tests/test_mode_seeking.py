import math

import numpy as np
import pytest

from img_rlsf.color import Color, pack_colors
from img_rlsf.errors import InvalidArgumentError
from img_rlsf.mode_seeking import robust_weight, seek_mode, window_bounds_numba


TWO_SIGMA_SQ = 2.0 * 50.0 * 50.0


def _crafted_neighbourhood():
    patch = np.array([
        [[10, 20, 30], [200, 0, 0], [0, 0, 0]],
        [[90, 90, 90], [1, 2, 3], [15, 25, 35]],
        [[255, 255, 255], [12, 18, 33], [60, 10, 200]],
    ], dtype=np.uint8)
    return patch


def _sorted_distances(candidate, patch, estimate):
    cells = patch.reshape(9, 3).astype(np.float64)
    cells[4] = estimate
    d = ((cells - np.asarray(candidate, dtype=np.float64)) ** 2).sum(axis=1)
    return np.sort(d)


def test_alpha_one_uses_nearest_distance():
    patch = _crafted_neighbourhood()
    candidate = (14, 21, 31)
    estimate = (50.5, 60.0, 70.25)

    nearest = _sorted_distances(candidate, patch, estimate)[0]
    expected = math.exp(-(nearest / TWO_SIGMA_SQ))
    assert robust_weight(candidate, patch, estimate, 1, TWO_SIGMA_SQ) == pytest.approx(expected, rel=1e-12)


@pytest.mark.parametrize("alpha", [2, 3, 5, 9])
def test_trimmed_average_of_alpha_smallest(alpha):
    patch = _crafted_neighbourhood()
    candidate = Color(14, 21, 31)
    estimate = (100.0, 100.0, 100.0)

    avg = _sorted_distances(candidate, patch, estimate)[:alpha].sum() / alpha
    expected = math.exp(-(avg / TWO_SIGMA_SQ))
    assert robust_weight(candidate, patch, estimate, alpha, TWO_SIGMA_SQ) == pytest.approx(expected, rel=1e-12)


def test_alpha_above_nine_is_clamped():
    patch = _crafted_neighbourhood()
    w9 = robust_weight((1, 2, 3), patch, (4.0, 5.0, 6.0), 9, TWO_SIGMA_SQ)
    w20 = robust_weight((1, 2, 3), patch, (4.0, 5.0, 6.0), 20, TWO_SIGMA_SQ)
    assert w20 == w9


def test_centre_cell_is_replaced_by_estimate():
    patch = np.zeros((3, 3, 3), dtype=np.uint8)
    patch[1, 1] = (77, 77, 77)
    # only the estimate matches the candidate, the raw centre value must be ignored
    w = robust_weight((200, 200, 200), patch, (200.0, 200.0, 200.0), 1, TWO_SIGMA_SQ)
    assert w == 1.0


def test_weight_is_one_in_homogeneous_patch():
    patch = np.full((3, 3, 3), 42, dtype=np.uint8)
    assert robust_weight((42, 42, 42), patch, (42.0, 42.0, 42.0), 3, TWO_SIGMA_SQ) == 1.0


def test_weight_strictly_decreases_with_distance():
    patch = np.full((3, 3, 3), 100, dtype=np.uint8)
    weights = [
        robust_weight((100 + d, 100, 100), patch, (100.0, 100.0, 100.0), 3, TWO_SIGMA_SQ)
        for d in range(0, 150, 10)
    ]
    assert all(0.0 < w <= 1.0 for w in weights)
    assert all(a > b for a, b in zip(weights, weights[1:]))


def test_outlier_patch_gets_small_weight():
    patch = np.full((3, 3, 3), 100, dtype=np.uint8)
    inlier = robust_weight((100, 100, 100), patch, (100.0, 100.0, 100.0), 3, TWO_SIGMA_SQ)
    outlier = robust_weight((255, 255, 255), patch, (100.0, 100.0, 100.0), 3, TWO_SIGMA_SQ)
    assert inlier == 1.0
    assert outlier < 1e-3


def test_robust_weight_validation():
    patch = np.zeros((3, 3, 3), dtype=np.uint8)
    with pytest.raises(InvalidArgumentError):
        robust_weight((0, 0, 0), patch, (0, 0, 0), 0, TWO_SIGMA_SQ)
    with pytest.raises(InvalidArgumentError):
        robust_weight((0, 0, 0), patch, (0, 0, 0), 3, 0.0)
    with pytest.raises(InvalidArgumentError):
        robust_weight((0, 0, 0), patch[:2], (0, 0, 0), 3, TWO_SIGMA_SQ)


@pytest.mark.parametrize("center, radius, size, expected", [
    (5, 1, 20, (3, 7)),
    (2, 2, 20, (1, 5)),
    (17, 3, 20, (13, 18)),
    (1, 5, 4, (1, 2)),
])
def test_window_bounds_are_clipped(center, radius, size, expected):
    start, end = window_bounds_numba(center, radius, size)
    assert (start, end) == expected
    assert 1 <= start <= end <= size - 2


def test_seek_mode_constant_image_converges_immediately():
    img = np.full((9, 9, 3), 128, dtype=np.uint8)
    color, n_iter = seek_mode(img, 4, 4, r=1, alpha=3, sigma=50.0, iter=5)
    assert color == Color(128, 128, 128)
    # symmetric window, nothing moves
    assert n_iter == 1


def test_seek_mode_accepts_packed_buffer():
    img = np.full((9, 9, 3), 128, dtype=np.uint8)
    assert seek_mode(pack_colors(img), 4, 4, r=1)[0] == Color(128, 128, 128)


def test_seek_mode_respects_iteration_limit(random_image):
    for row, col in [(1, 1), (5, 7), (12, 10), (22, 18)]:
        for max_iter in (1, 3, 7):
            _, n_iter = seek_mode(random_image, row, col, r=2, alpha=3, sigma=20.0, iter=max_iter)
            assert 1 <= n_iter <= max_iter


def test_seek_mode_removes_impulse():
    img = np.full((9, 9, 3), 100, dtype=np.uint8)
    img[4, 4] = (255, 255, 255)
    color, _ = seek_mode(img, 4, 4, r=1, alpha=3, sigma=50.0, iter=10)
    assert all(abs(c - 100) <= 1 for c in color)


def test_seek_mode_rejects_border_pixel():
    img = np.zeros((6, 6, 3), dtype=np.uint8)
    with pytest.raises(InvalidArgumentError):
        seek_mode(img, 0, 3)
    with pytest.raises(InvalidArgumentError):
        seek_mode(img, 3, 5)
    with pytest.raises(InvalidArgumentError):
        seek_mode(img, 3, 3, r=0)
