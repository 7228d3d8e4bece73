"""
**Color Value Type and Packed Transport**

Colors are handled as an ordered triple of 8-bit channel intensities (R, G, B).
Inside the filter kernels a whole image is transported as a 2D array of packed
24-bit integers, one `uint32` per pixel:

```text
  bit   23 ........ 16 15 ......... 8 7 .......... 0
        |     red     |    green     |     blue     |
```

Packing only happens at the backend boundaries (before the kernel launch and
after it). Everything else works with `Color` or with `(H, W, 3)` uint8 arrays.
All packing is done on unsigned integers, so no channel can leak a sign bit
into its neighbour.

Example:
```python
packed = rlsf.color.pack_colors(img)          # (H, W, 3) uint8 -> (H, W) uint32
img_back = rlsf.color.unpack_colors(packed)   # (H, W) uint32 -> (H, W, 3) uint8
```

Dependencies:
- numpy

Public API:
- Color
- pack_colors(...)
- unpack_colors(...)

Kernel helpers:
- pack_rgb(...)
- red(...), green(...), blue(...)
"""



# ---------------
# >>> Imports <<<
# ---------------
from __future__ import annotations

from typing import NamedTuple

import numpy as np

from .errors import InvalidArgumentError



# ------------------
# >>> Value Type <<<
# ------------------

class Color(NamedTuple):
    """
    A single pixel color as three unsigned 8-bit channels.

    Attributes:
    - r (int): red channel in [0, 255].
    - g (int): green channel in [0, 255].
    - b (int): blue channel in [0, 255].
    """
    r: int
    g: int
    b: int

    @classmethod
    def of(cls, r, g, b) -> "Color":
        """
        Build a validated color from any integer-like channel values.

        Raises:
        - InvalidArgumentError: if a channel is outside [0, 255].
        """
        channels = (int(r), int(g), int(b))
        for value in channels:
            if value < 0 or value > 255:
                raise InvalidArgumentError("Color.of", f"Color channel out of range [0, 255]: {value}")
        return cls(*channels)

    @classmethod
    def from_packed(cls, packed: int) -> "Color":
        packed = int(packed) & 0xFFFFFF
        return cls((packed >> 16) & 0xFF, (packed >> 8) & 0xFF, packed & 0xFF)

    def to_packed(self) -> int:
        return (self.r << 16) | (self.g << 8) | self.b

    def squared_distance(self, other) -> int:
        """
        Squared Euclidean distance in RGB space.
        """
        dr = self.r - other[0]
        dg = self.g - other[1]
        db = self.b - other[2]
        return dr * dr + dg * dg + db * db



# ------------------------------
# >>> Array Packing (Host) <<<
# ------------------------------

def pack_colors(img: np.ndarray) -> np.ndarray:
    """
    Pack a color image into the working representation used by the kernels.

    Parameters:
    - img (np.ndarray): <br>
        (H, W, 3) array with values in [0, 255]. Other integer dtypes are
        converted to uint8 first.

    Returns:
    - np.ndarray: <br>
        C-contiguous (H, W) uint32 array with `r << 16 | g << 8 | b` per pixel.
    """
    if img.ndim != 3 or img.shape[2] != 3:
        raise ValueError(f"pack_colors: expected (H, W, 3) image, got shape {img.shape}.")

    if img.dtype != np.uint8:
        img = img.astype(np.uint8)

    # widen before shifting so nothing overflows or sign-extends
    channels = img.astype(np.uint32)
    packed = (channels[..., 0] << np.uint32(16)) | (channels[..., 1] << np.uint32(8)) | channels[..., 2]
    return np.ascontiguousarray(packed, dtype=np.uint32)



def unpack_colors(packed: np.ndarray, out: np.ndarray = None) -> np.ndarray:
    """
    Unpack a (H, W) uint32 working buffer back into an (H, W, 3) uint8 image.

    Parameters:
    - packed (np.ndarray): <br>
        Packed working buffer.
    - out (np.ndarray, optional): <br>
        Preallocated (H, W, 3) uint8 destination. A new array is allocated when None.

    Returns:
    - np.ndarray: <br>
        The unpacked image (`out` if it was given).
    """
    if packed.ndim != 2:
        raise ValueError(f"unpack_colors: expected (H, W) buffer, got shape {packed.shape}.")

    packed = packed.astype(np.uint32, copy=False)
    if out is None:
        out = np.empty(packed.shape + (3,), dtype=np.uint8)

    out[..., 0] = (packed >> np.uint32(16)) & np.uint32(0xFF)
    out[..., 1] = (packed >> np.uint32(8)) & np.uint32(0xFF)
    out[..., 2] = packed & np.uint32(0xFF)
    return out



# ----------------------------
# >>> Kernel-Side Helpers <<<
# ----------------------------
# Plain Python so the same helpers can be compiled for every backend target.

def red(packed):
    return (packed >> 16) & 0xFF


def green(packed):
    return (packed >> 8) & 0xFF


def blue(packed):
    return packed & 0xFF


def pack_rgb(r, g, b):
    return (r << 16) | (g << 8) | b

