import numpy as np
import pytest


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def noisy_image(rng):
    """
    Constant clean image with 5% impulse noise.
    """
    clean = np.empty((32, 36, 3), dtype=np.uint8)
    clean[...] = (120, 80, 60)

    noisy = clean.copy()
    mask = rng.random(clean.shape[:2]) < 0.05
    noisy[mask] = rng.integers(0, 256, size=(int(mask.sum()), 3), dtype=np.uint8)
    return clean, noisy


@pytest.fixture
def random_image(rng):
    return rng.integers(0, 256, size=(24, 20, 3), dtype=np.uint8)
