"""
**Quality Measures for Filter Output**

Compare a filtered color image against its clean reference. As in the usual
evaluation of the filter, a frame of `border` pixels is ignored on every side
because the filter leaves the image border untouched.

Example:
```python
q = rlsf.metrics.calculate_snr(clean, filtered)
print(q.psnr, q.mae)
```

Dependencies:
- numpy
- OpenCV (cv2)

Public API:
- QualityMeasures
- calculate_snr(...)
- mse(...)
- psnr(...)
"""



# ---------------
# >>> Imports <<<
# ---------------
from __future__ import annotations

import math
from typing import NamedTuple

import numpy as np
import cv2

from .errors import InvalidArgumentError
from .image import Image, is_rgb_img



# --------------
# >>> Helper <<<
# --------------

class QualityMeasures(NamedTuple):
    snr: float
    psnr: float
    rmse: float
    mae: float



def _cropped_pair(func_name, ref_img, test_img, border):
    if not is_rgb_img(ref_img) or not is_rgb_img(test_img):
        raise InvalidArgumentError(func_name, "Not a color image !")

    ref = ref_img.read_view() if isinstance(ref_img, Image) else ref_img
    test = test_img.read_view() if isinstance(test_img, Image) else test_img
    if ref.shape != test.shape:
        raise InvalidArgumentError(func_name, f"Image dimensions do not agree ( {ref.shape} vs {test.shape} ) !")

    H, W = ref.shape[:2]
    if border < 0 or 2 * border >= H or 2 * border >= W:
        raise InvalidArgumentError(func_name, f"Border ( {border} ) leaves no pixels in a {H}x{W} image !")

    # copies: contiguous and writable for OpenCV
    return ref[border:H - border, border:W - border].copy(), test[border:H - border, border:W - border].copy()



# ----------------
# >>> Measures <<<
# ----------------

def mse(ref_img, test_img, border: int = 10) -> float:
    ref, test = _cropped_pair("mse", ref_img, test_img, border)
    diff = ref.astype(np.float64) - test.astype(np.float64)
    return float(np.mean(diff * diff))



def psnr(ref_img, test_img, border: int = 10) -> float:
    """
    Peak signal-to-noise ratio in dB (peak 255). Identical images give inf.
    """
    ref, test = _cropped_pair("psnr", ref_img, test_img, border)
    if np.array_equal(ref, test):
        return math.inf
    return float(cv2.PSNR(ref, test, 255.0))



def calculate_snr(ref_img, test_img, border: int = 10) -> QualityMeasures:
    """
    Compute SNR, PSNR, RMSE and MAE between a reference and a test color image.

    Parameters:
    - ref_img (Image | np.ndarray): <br>
        Clean reference RGB image.
    - test_img (Image | np.ndarray): <br>
        Filtered RGB image of the same size.
    - border (int): <br>
        Number of pixels ignored on every side (default: 10).

    Returns:
    - QualityMeasures: <br>
        snr and psnr in dB (inf for identical images), rmse and mae in intensity levels.
    """
    ref, test = _cropped_pair("calculate_snr", ref_img, test_img, border)
    ref_f = ref.astype(np.float64)
    diff = ref_f - test.astype(np.float64)

    mse_value = float(np.mean(diff * diff))
    mae_value = float(np.mean(cv2.absdiff(ref, test)))
    signal_energy = float(np.mean(ref_f * ref_f))

    if mse_value == 0.0:
        return QualityMeasures(math.inf, math.inf, 0.0, mae_value)

    snr_value = 10.0 * math.log10(signal_energy / mse_value) if signal_energy > 0 else -math.inf
    psnr_value = float(cv2.PSNR(ref, test, 255.0))
    return QualityMeasures(snr_value, psnr_value, math.sqrt(mse_value), mae_value)
