"""
**Image Abstraction**

A small image container that the filter consumes. An `Image` is tagged with its
`PixelKind` and stores its pixels as a numpy array whose layout is implied by
the kind:

| PixelKind | dtype   | shape     |
|-----------|---------|-----------|
| BIN       | uint8   | (H, W)    |
| GRAY      | uint8   | (H, W)    |
| RGB       | uint8   | (H, W, 3) |
| INT_1B    | int32   | (H, W)    |
| INT_3B    | int32   | (H, W, 3) |
| DBL_1B    | float64 | (H, W)    |
| DBL_3B    | float64 | (H, W, 3) |

Regardless of kind, every image exposes its dimensions, a read-only view and a
writable view.

Example:
```python
img = rlsf.image.Image.from_array(np_rgb_uint8)
out = rlsf.image.alloc_img(rlsf.image.PixelKind.RGB, img.num_rows, img.num_cols)
```

Dependencies:
- numpy

Public API:
- PixelKind
- Image
- alloc_img(...)
- is_rgb_img(...)
- img_dims_agree(...)
"""



# ---------------
# >>> Imports <<<
# ---------------
from __future__ import annotations

from enum import Enum
from typing import Tuple

import numpy as np

from .errors import InvalidArgumentError, OutOfMemoryError



# -----------------
# >>> Pixel Kind <<<
# -----------------

class PixelKind(Enum):
    BIN = "bin"
    GRAY = "gray"
    RGB = "rgb"
    INT_1B = "int_1b"
    INT_3B = "int_3b"
    DBL_1B = "dbl_1b"
    DBL_3B = "dbl_3b"

    @property
    def dtype(self):
        return _KIND_LAYOUT[self][0]

    @property
    def num_bands(self) -> int:
        return _KIND_LAYOUT[self][1]

    def shape(self, num_rows: int, num_cols: int) -> Tuple[int, ...]:
        if self.num_bands == 1:
            return (num_rows, num_cols)
        return (num_rows, num_cols, self.num_bands)


_KIND_LAYOUT = {
    PixelKind.BIN: (np.uint8, 1),
    PixelKind.GRAY: (np.uint8, 1),
    PixelKind.RGB: (np.uint8, 3),
    PixelKind.INT_1B: (np.int32, 1),
    PixelKind.INT_3B: (np.int32, 3),
    PixelKind.DBL_1B: (np.float64, 1),
    PixelKind.DBL_3B: (np.float64, 3),
}



# -------------
# >>> Image <<<
# -------------

class Image:
    """
    A tagged 2D image.

    Attributes:
    - kind (PixelKind): what the pixels are.
    - data (np.ndarray | None): pixel storage, None after `free()`.
    """
    def __init__(self, kind: PixelKind, data: np.ndarray):
        if data.ndim < 2:
            raise InvalidArgumentError("Image", f"expected 2D or 3D pixel data, got shape {data.shape}")
        expected = kind.shape(*data.shape[:2])
        if data.shape != expected or data.dtype != kind.dtype:
            raise InvalidArgumentError(
                "Image",
                f"{kind.name} image needs {np.dtype(kind.dtype).name} data of shape {expected}, "
                f"got {data.dtype.name} {data.shape}"
            )
        self.kind = kind
        self.data = data

    @classmethod
    def from_array(cls, arr: np.ndarray, kind: PixelKind = None) -> "Image":
        """
        Wrap a numpy array, inferring the pixel kind when none is given.

        uint8 (H, W) arrays are GRAY unless they only contain 0 and 1, then BIN.
        The array is not copied.
        """
        arr = np.asarray(arr)
        if kind is None:
            kind = _infer_kind(arr)
        return cls(kind, arr)

    def __repr__(self):
        if self.data is None:
            return f"Image({self.kind.name}, freed)"
        return f"Image({self.kind.name}, {self.num_rows}x{self.num_cols})"

    @property
    def num_rows(self) -> int:
        return self.data.shape[0]

    @property
    def num_cols(self) -> int:
        return self.data.shape[1]

    @property
    def num_bands(self) -> int:
        return self.kind.num_bands

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.data.shape

    def is_rgb(self) -> bool:
        return self.kind is PixelKind.RGB

    def read_view(self) -> np.ndarray:
        """
        Read-only view on the pixel data (no copy).
        """
        view = self.data.view()
        view.flags.writeable = False
        return view

    def write_view(self) -> np.ndarray:
        return self.data

    def clone(self) -> "Image":
        return Image(self.kind, self.data.copy())

    def free(self) -> None:
        self.data = None



def _infer_kind(arr: np.ndarray) -> PixelKind:
    if arr.ndim == 3 and arr.shape[2] == 3:
        if arr.dtype == np.uint8:
            return PixelKind.RGB
        if arr.dtype == np.int32:
            return PixelKind.INT_3B
        if arr.dtype == np.float64:
            return PixelKind.DBL_3B
    elif arr.ndim == 2:
        if arr.dtype == np.uint8:
            return PixelKind.BIN if arr.size and arr.max() <= 1 else PixelKind.GRAY
        if arr.dtype == np.int32:
            return PixelKind.INT_1B
        if arr.dtype == np.float64:
            return PixelKind.DBL_1B

    raise InvalidArgumentError("Image.from_array", f"unsupported array {arr.dtype.name} {arr.shape}")



# ---------------
# >>> Helper <<<
# ---------------

def alloc_img(kind: PixelKind, num_rows: int, num_cols: int) -> Image:
    """
    Allocate a zero-filled image.

    Parameters:
    - kind (PixelKind): <br>
        Pixel kind of the new image.
    - num_rows (int): <br>
        Height in pixels (> 0).
    - num_cols (int): <br>
        Width in pixels (> 0).

    Returns:
    - Image: <br>
        New image with every pixel set to 0.

    Raises:
    - InvalidArgumentError: non-positive dimensions.
    - OutOfMemoryError: the pixel buffer could not be allocated.
    """
    if num_rows <= 0 or num_cols <= 0:
        raise InvalidArgumentError("alloc_img", f"Invalid image dimensions ( {num_rows} x {num_cols} ) !")

    try:
        data = np.zeros(kind.shape(num_rows, num_cols), dtype=kind.dtype)
    except MemoryError:
        raise OutOfMemoryError("alloc_img", "Insufficient memory !") from None

    return Image(kind, data)



def is_rgb_img(img) -> bool:
    """
    True for RGB `Image`s and for (H, W, 3) uint8 arrays.
    """
    if isinstance(img, Image):
        return img.data is not None and img.is_rgb()
    if isinstance(img, np.ndarray):
        return img.ndim == 3 and img.shape[2] == 3 and img.dtype == np.uint8
    return False



def img_dims_agree(img_a: Image, img_b: Image) -> bool:
    return img_a.num_rows == img_b.num_rows and img_a.num_cols == img_b.num_cols
