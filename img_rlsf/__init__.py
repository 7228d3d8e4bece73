"""
**img_rlsf**

Robust Local Smoothing Filter (RLSF) for color images: a robust, iterative
mean-shift style mode seeking per pixel, executed in parallel on the CPU
(numba / joblib) or on a CUDA device.

Modules:
- color         - color value type and packed transport
- image         - tagged image container
- errors        - error kinds and error policy
- mode_seeking  - robust weight and per-pixel mode seeking
- backends      - serial, threads, numba and cuda execution
- rlsf          - the filter entry point
- metrics       - SNR / PSNR / RMSE / MAE against a reference
"""
from . import color
from . import image
from . import errors
from . import mode_seeking
from . import backends
from . import rlsf
from . import metrics

from .color import Color
from .errors import InvalidArgumentError, OutOfMemoryError, RLSFError
from .image import Image, PixelKind, alloc_img
from .rlsf import RLSFParams, filter_ms_rlsf

__all__ = [
    "Color",
    "Image",
    "PixelKind",
    "alloc_img",
    "RLSFParams",
    "filter_ms_rlsf",
    "RLSFError",
    "InvalidArgumentError",
    "OutOfMemoryError",
]
