"""
**Robust Weighting and Per-Pixel Mode Seeking**

This module holds the numeric heart of the Robust Local Smoothing Filter
(RLSF): the robust weight between a candidate color and a small neighbourhood,
and the iterative mode-seeking loop that runs for a single pixel.

Both routines are written once as plain Python and compiled for a target by
`build_pixel_routines(jit)`. The host backends use `numba.njit`, the CUDA
backend uses `numba.cuda.jit(device=True)`, so every backend runs exactly the
same algorithm. For this reason the routines stick to the subset of Python
that compiles on both targets: scalar math, tuples, and caller-provided
scratch arrays (no allocation inside).

Robust weight of a candidate color c:
```text
    3x3 neighbourhood around the current (rounded) position p
    ┌─────┬─────┬─────┐
    │ n0  │ n1  │ n2  │        d_k = |c - n_k|^2      (n4 := current estimate)
    ├─────┼─────┼─────┤
    │ n3  │ est │ n5  │        avg = mean of the `alpha` smallest d_k
    ├─────┼─────┼─────┤
    │ n6  │ n7  │ n8  │        w   = exp(-(avg / (2 sigma^2)))
    └─────┴─────┴─────┘
```

Mode seeking for a pixel (row, col):
```text
    INIT      pos = (row, col), color = original color
    ITERATE   window = [round(pos) - r - 1, round(pos) + r + 1] clipped to [1, size - 2]
              w_q    = robust weight of every window cell q against the estimate
              color  = sum(w_q * color_q) / sum(w_q)
              pos    = sum(w_q * (i_q, j_q)) / sum(w_q)      (clamped >= 0)
    STOP      after `iter` iterations or when nothing moved (diff <= 0)
```

The drifting position only decides which window is searched next. The final
color is always written back at the pixel's original coordinates.

Dependencies:
- numpy
- numba

Public API:
- build_pixel_routines(...)
- robust_weight(...)
- seek_mode(...)

Compiled host routines:
- window_bounds_numba(...)
- compute_weight_numba(...)
- denoise_pixel_numba(...)
"""



# ---------------
# >>> Imports <<<
# ---------------
from __future__ import annotations

import math
from typing import Tuple

import numpy as np

# optimization
import numba

from .color import Color, red, green, blue, pack_colors
from .errors import InvalidArgumentError



# ----------------
# >>> Constants <<<
# ----------------

# the fixed weighting neighbourhood is 3x3
NEIGHBOURHOOD_SIZE = 9

# marks an already selected distance during the partial selection
CONSUMED = float("inf")



# -----------------------------
# >>> Single-Source Routines <<<
# -----------------------------

def build_pixel_routines(jit):
    """
    Compile the RLSF pixel routines for one execution target.

    Parameters:
    - jit (callable): <br>
        A decorator that compiles a plain Python function for the target, e.g.
        `numba.njit(nogil=True)` or `numba.cuda.jit(device=True)`.

    Returns:
    - Tuple[callable, callable, callable]: <br>
        `(window_bounds, compute_weight, denoise_pixel)` compiled with `jit`.
    """
    red_ = jit(red)
    green_ = jit(green)
    blue_ = jit(blue)

    @jit
    def window_bounds(center, radius, size):
        # 1 pixel safety margin so the 3x3 neighbourhood never leaves the buffer
        start = max(center - radius - 1, 1)
        end = min(center + radius + 1, size - 2)
        return start, end

    @jit
    def compute_weight(data, prow, pcol, cr, cg, cb, er, eg, eb, alpha, two_sigma_sq, dists):
        # squared color distances between the candidate and the 3x3 patch around (prow, pcol),
        # the centre cell is replaced by the current estimate
        k = 0
        for i in range(-1, 2):
            for j in range(-1, 2):
                if i == 0 and j == 0:
                    r1 = er
                    g1 = eg
                    b1 = eb
                else:
                    v = data[prow + i, pcol + j]
                    r1 = float(red_(v))
                    g1 = float(green_(v))
                    b1 = float(blue_(v))
                dists[k] = (cr - r1) * (cr - r1) + (cg - g1) * (cg - g1) + (cb - b1) * (cb - b1)
                k += 1

        # partial selection of the alpha smallest distances, ties -> first occurrence
        total = 0.0
        n_take = min(alpha, 9)
        for _ in range(n_take):
            best = dists[0]
            best_idx = 0
            for t in range(1, 9):
                if dists[t] < best:
                    best = dists[t]
                    best_idx = t
            total += best
            dists[best_idx] = CONSUMED

        avg = total / alpha
        return math.exp(-(avg / two_sigma_sq))

    @jit
    def denoise_pixel(data, row, col, radius, alpha, two_sigma_sq, max_iter, dists):
        height = data.shape[0]
        width = data.shape[1]

        v = data[row, col]
        r = float(red_(v))
        g = float(green_(v))
        b = float(blue_(v))
        ir = float(row)
        ic = float(col)

        n_iter = 0
        while True:
            # C-style rounding, positions are never negative
            pr = int(math.floor(ir + 0.5))
            pc = int(math.floor(ic + 0.5))
            istart, iend = window_bounds(pr, radius, height)
            jstart, jend = window_bounds(pc, radius, width)

            wsum = 0.0
            sr = 0.0
            sg = 0.0
            sb = 0.0
            mrow = 0.0
            mcol = 0.0
            for i in range(istart, iend + 1):
                for j in range(jstart, jend + 1):
                    q = data[i, j]
                    qr = float(red_(q))
                    qg = float(green_(q))
                    qb = float(blue_(q))
                    w = compute_weight(data, pr, pc, qr, qg, qb, r, g, b, alpha, two_sigma_sq, dists)
                    sr += qr * w
                    sg += qg * w
                    sb += qb * w
                    mrow += i * w
                    mcol += j * w
                    wsum += w

            n_iter += 1

            # every weight underflowed: keep the last estimate
            if wsum <= 0.0:
                break

            nr = sr / wsum
            ng = sg / wsum
            nb = sb / wsum
            nir = mrow / wsum
            nic = mcol / wsum
            if nir < 0.0:
                nir = 0.0
            if nic < 0.0:
                nic = 0.0

            diff = (r - nr) * (r - nr) + (g - ng) * (g - ng) + (b - nb) * (b - nb) \
                   + (ir - nir) * (ir - nir) + (ic - nic) * (ic - nic)

            r = nr
            g = ng
            b = nb
            ir = nir
            ic = nic

            if n_iter >= max_iter or diff <= 0.0:
                break

        return r, g, b, n_iter

    return window_bounds, compute_weight, denoise_pixel


# host compiled versions (no fastmath: consumed distances are marked with +inf)
window_bounds_numba, compute_weight_numba, denoise_pixel_numba = build_pixel_routines(numba.njit(nogil=True))



# -------------------------
# >>> Host Entry Points <<<
# -------------------------

def _check_alpha(func_name: str, alpha: int) -> int:
    if alpha <= 0:
        raise InvalidArgumentError(func_name, f"Alpha value ( {alpha} ) must be positive !")
    return min(int(alpha), NEIGHBOURHOOD_SIZE)



def robust_weight(candidate, neighbourhood, estimate, alpha: int, two_sigma_sq: float) -> float:
    """
    Evaluate the robust weight of one candidate color.

    The centre cell of `neighbourhood` is ignored and replaced by `estimate`,
    exactly as inside the filter.

    Parameters:
    - candidate (Color | Sequence[int]): <br>
        Color of the window cell that is being weighted.
    - neighbourhood (array-like): <br>
        (3, 3, 3) uint8-compatible colors around the current position.
    - estimate (Sequence[float]): <br>
        Current color estimate of the pixel (may be fractional).
    - alpha (int): <br>
        Number of smallest distances averaged (clamped to 9).
    - two_sigma_sq (float): <br>
        Kernel scale, already in the form 2 * sigma * sigma.

    Returns:
    - float: <br>
        The weight in [0, 1].
    """
    alpha = _check_alpha("robust_weight", alpha)
    if two_sigma_sq <= 0:
        raise InvalidArgumentError("robust_weight", f"Kernel scale ( {two_sigma_sq} ) must be positive !")

    patch = np.asarray(neighbourhood)
    if patch.shape != (3, 3, 3):
        raise InvalidArgumentError("robust_weight", f"Expected a (3, 3, 3) neighbourhood, got {patch.shape}")

    data = pack_colors(patch)
    candidate = Color.of(*candidate)
    dists = np.empty(NEIGHBOURHOOD_SIZE, dtype=np.float64)
    return float(compute_weight_numba(
        data, 1, 1,
        float(candidate.r), float(candidate.g), float(candidate.b),
        float(estimate[0]), float(estimate[1]), float(estimate[2]),
        alpha, float(two_sigma_sq), dists
    ))



def seek_mode(img: np.ndarray, row: int, col: int,
              r: int = 2, alpha: int = 3, sigma: float = 50.0, iter: int = 10) -> Tuple[Color, int]:
    """
    Run the mode-seeking iteration for a single pixel.

    Same computation the filter performs per pixel, without the border rule,
    so any pixel with a full 3x3 neighbourhood can be inspected.

    Parameters:
    - img (np.ndarray): <br>
        (H, W, 3) uint8 image or an already packed (H, W) uint32 buffer.
    - row, col (int): <br>
        Pixel coordinates, must lie in [1, size - 2].
    - r, alpha, sigma, iter: <br>
        Filter parameters (see `filter_ms_rlsf`).

    Returns:
    - Tuple[Color, int]: <br>
        The truncated final color and the number of iterations performed.
    """
    alpha = _check_alpha("seek_mode", alpha)
    if r <= 0 or sigma <= 0 or iter <= 0:
        raise InvalidArgumentError("seek_mode", "r, sigma and iter must be positive !")

    data = img if img.ndim == 2 else pack_colors(img)
    data = np.ascontiguousarray(data, dtype=np.uint32)
    height, width = data.shape
    if not (1 <= row <= height - 2 and 1 <= col <= width - 2):
        raise InvalidArgumentError("seek_mode", f"Pixel ( {row}, {col} ) has no full 3x3 neighbourhood !")

    dists = np.empty(NEIGHBOURHOOD_SIZE, dtype=np.float64)
    cr, cg, cb, n_iter = denoise_pixel_numba(
        data, int(row), int(col), int(r), alpha, 2.0 * sigma * sigma, int(iter), dists
    )
    return Color(int(cr), int(cg), int(cb)), int(n_iter)
