"""
**Robust Local Smoothing Filter (RLSF) for Color Images**

This module is the public entry point of the filter. It validates the
parameters, converts the color image into the packed working buffer, runs the
per-pixel mode-seeking routine on the selected backend and converts the result
back into a new image of the same kind and size.

Pipeline:
```text
   Input (H,W,3) uint8 ──> pack ──> (H,W) uint32 ──┐
                                                   v
                         ┌─────────────────────────────────────────┐
                         │ backend: for every pixel (independently) │
                         │   mode seeking with robust weights       │
                         └─────────────────────────────────────────┘
                                                   │
   Output (H,W,3) uint8 <── unpack <── (H,W) uint32 ┘
```

Pixels within `r + 1` of any image edge are not filtered and stay 0 in the
output. The input is never modified.

Example:
```python
import img_rlsf as rlsf

out = rlsf.filter_ms_rlsf(noisy, r=2, alpha=3, sigma=50.0, iter=10, backend="numba")
out, iterations = rlsf.filter_ms_rlsf(noisy, backend="threads", return_iterations=True)
```

Dependencies:
- numpy
- numba / joblib (through `img_rlsf.backends`)

Public API:
- RLSFParams
- filter_ms_rlsf(...)
- border_margin(...)
"""



# ---------------
# >>> Imports <<<
# ---------------
from __future__ import annotations

import time
from dataclasses import dataclass, replace

import numpy as np

from .backends import get_backend
from .color import pack_colors, unpack_colors
from .errors import (InvalidArgumentError, OutOfMemoryError, RLSFError,
                     check_error_policy, handle_error)
from .image import Image, PixelKind, alloc_img, is_rgb_img
from .mode_seeking import NEIGHBOURHOOD_SIZE



# --------------
# >>> Config <<<
# --------------

@dataclass(frozen=True)
class RLSFParams:
    """
    Parameters of one RLSF run.

    Attributes:
    - r (int): block radius of the search window (> 0).
    - alpha (int): number of smallest 3x3 distances averaged per weight (> 0, clamped to 9).
    - sigma (float): kernel scale (> 0), used as 2 * sigma * sigma.
    - iter (int): maximum number of mode-seeking iterations per pixel (> 0).
    """
    r: int = 2
    alpha: int = 3
    sigma: float = 50.0
    iter: int = 10

    @property
    def two_sigma_sq(self) -> float:
        return 2.0 * self.sigma * self.sigma

    @property
    def margin(self) -> int:
        return border_margin(self.r)

    def validated(self, func_name: str = "RLSFParams") -> "RLSFParams":
        """
        Check that all parameters are positive and return a copy with alpha clamped to 9.

        Raises:
        - InvalidArgumentError: a parameter is not positive.
        """
        if not self.r > 0:
            raise InvalidArgumentError(func_name, f"Window size ( {self.r} ) must be positive !")
        if not self.alpha > 0:
            raise InvalidArgumentError(func_name, f"Alpha value ( {self.alpha} ) must be positive !")
        if not self.sigma > 0:
            raise InvalidArgumentError(func_name, f"Sigma value ( {self.sigma} ) must be positive !")
        if not self.iter > 0:
            raise InvalidArgumentError(func_name, f"Number of iterations ( {self.iter} ) must be positive !")

        return replace(self,
                       r=int(self.r),
                       alpha=min(int(self.alpha), NEIGHBOURHOOD_SIZE),
                       sigma=float(self.sigma),
                       iter=int(self.iter))



def border_margin(r: int) -> int:
    """
    Width of the unfiltered image border for block radius `r`.
    """
    return r + 1



# --------------
# >>> Filter <<<
# --------------

def filter_ms_rlsf(img,
                   r: int = 2,
                   alpha: int = 3,
                   sigma: float = 50.0,
                   iter: int = 10,
                   params: RLSFParams = None,
                   backend: str = "numba",
                   n_jobs: int = -1,
                   rows_per_task: int = 4,
                   threads_per_block=(16, 16),
                   return_iterations: bool = False,
                   errors: str = "raise",
                   should_print: bool = False):
    """
    Denoise a color image with the Robust Local Smoothing Filter.

    Every pixel (outside the border) runs an independent mean-shift style mode
    seeking in joint color and position space. In each iteration the window
    around the current position is weighted with robust weights (trimmed
    average of the `alpha` nearest 3x3 color distances, exponential kernel)
    and the color and position estimates move to the weighted centroid. The
    final color is written at the pixel's original position.

    Parameters:
    - img (Image | np.ndarray): <br>
        RGB `Image` or (H, W, 3) uint8 array. Not modified.
    - r (int): <br>
        Block radius (> 0). The window spans r + 1 pixels around the position.
    - alpha (int): <br>
        Number of smallest distances per weight (> 0). Values above 9 are clamped to 9.
    - sigma (float): <br>
        Kernel scale (> 0). Internally used as 2 * sigma * sigma.
    - iter (int): <br>
        Iteration limit per pixel (> 0).
    - params (RLSFParams, optional): <br>
        Bundled parameters. Overrides `r`, `alpha`, `sigma` and `iter` when given.
    - backend (str): <br>
        "numba" (default), "threads", "serial" or "cuda".
    - n_jobs (int): <br>
        Worker count for the host backends. -1 for all cores.
    - rows_per_task (int): <br>
        Rows per task for the "threads" backend.
    - threads_per_block (Tuple[int, int]): <br>
        CUDA block shape (x=columns, y=rows).
    - return_iterations (bool): <br>
        Also return the (H, W) int32 map of iterations performed per pixel.
    - errors (str): <br>
        "raise" (default) raises on failure, "return" prints the error and returns None.
    - should_print (bool): <br>
        Print parameters, timing and convergence information.

    Returns:
    - Image | np.ndarray | Tuple | None: <br>
        New filtered image of the same type as `img` (plus the iteration map
        if `return_iterations`), or None on failure with `errors="return"`.

    Raises:
    - InvalidArgumentError: not a color image, non-positive parameter, unknown or
      unavailable backend.
    - OutOfMemoryError: an image or working buffer could not be allocated.
    """
    check_error_policy(errors)

    try:
        return _filter_ms_rlsf(img, params if params is not None else RLSFParams(r, alpha, sigma, iter),
                               backend=backend, n_jobs=n_jobs, rows_per_task=rows_per_task,
                               threads_per_block=threads_per_block, return_iterations=return_iterations,
                               should_print=should_print)
    except RLSFError as error:
        return handle_error(error, errors)



def _filter_ms_rlsf(img, params, backend, n_jobs, rows_per_task, threads_per_block,
                    return_iterations, should_print):
    func_name = "filter_ms_rlsf"

    # all checks happen before any work is done
    if not is_rgb_img(img):
        raise InvalidArgumentError(func_name, "Not a color image !")

    params = params.validated(func_name)
    runner = get_backend(backend, func_name=func_name)

    is_image = isinstance(img, Image)
    in_data = img.read_view() if is_image else img
    num_rows, num_cols = in_data.shape[:2]

    # output image + temporary working buffers
    try:
        out_img = alloc_img(PixelKind.RGB, num_rows, num_cols)
        packed_in = pack_colors(in_data)
        packed_out = np.zeros((num_rows, num_cols), dtype=np.uint32)
        iter_map = np.zeros((num_rows, num_cols), dtype=np.int32)
    except OutOfMemoryError:
        raise
    except MemoryError:
        raise OutOfMemoryError(func_name, "Insufficient memory !") from None

    start_time = time.perf_counter()

    runner.run(packed_in, packed_out, iter_map,
               params.r, params.alpha, params.two_sigma_sq, params.iter, params.margin,
               n_jobs=n_jobs, rows_per_task=rows_per_task, threads_per_block=threads_per_block)

    elapsed_time = time.perf_counter() - start_time

    unpack_colors(packed_out, out=out_img.write_view())
    del packed_in, packed_out

    if should_print:
        _print_run_info(params, runner.name, num_rows, num_cols, iter_map, elapsed_time)

    out = out_img if is_image else out_img.write_view()
    if return_iterations:
        return out, iter_map
    return out



def _print_run_info(params, backend_name, num_rows, num_cols, iter_map, elapsed_time):
    print(f"Robust Local Smoothing Filter ({backend_name}) on {num_rows}x{num_cols} image")
    print(f"Used parameters: r, alpha, sigma, iter: {params.r}, {params.alpha}, {params.sigma}, {params.iter}")
    print(f"Time: {elapsed_time:.4f} s")

    n_filtered = int(np.count_nonzero(iter_map))
    if n_filtered == 0:
        print("[WARNING] Image is too small for the block radius, no pixel was filtered.")
        return

    n_capped = int(np.count_nonzero(iter_map >= params.iter))
    print(f"Filtered pixels: {n_filtered}, mean iterations: {iter_map.sum() / n_filtered:.2f}")
    if n_capped > n_filtered // 2:
        print(f"[WARNING] {n_capped} of {n_filtered} pixels hit the iteration limit ({params.iter}).")
