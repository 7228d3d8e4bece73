"""
**Execution Backends for the RLSF Filter**

All backends share one contract: read the packed (H, W) uint32 input buffer,
run the per-pixel mode-seeking routine for every pixel outside the border
margin, and write each result into its own cell of the packed output buffer
(plus the number of iterations into `iter_map`). No pixel depends on another,
so the backends only differ in how they distribute the pixels:

| Backend   | Execution                                                        |
|-----------|------------------------------------------------------------------|
| "serial"  | compiled band kernel over all rows on the calling thread         |
| "threads" | joblib thread pool over small row bands, GIL released per band   |
| "numba"   | `numba.prange` over rows, chunk size 1 (dynamic scheduling)      |
| "cuda"    | one CUDA thread per pixel, 2D grid of 2D blocks                  |

Per-pixel work is data dependent (some pixels converge after one iteration,
others run until `iter`), so the host backends hand out small units of work
instead of fixed equal partitions.

The CUDA kernel is compiled lazily on first use, importing this module never
touches the GPU. With `NUMBA_ENABLE_CUDASIM=1` the "cuda" backend runs on
numba's CUDA simulator.

Dependencies:
- numpy
- numba (njit, prange, cuda)
- joblib

Public API:
- Backend
- BACKENDS
- get_backend(...)
- available_backends(...)
- cuda_available(...)

Main internal kernels:
- rlsf_band_kernel(...)
- rlsf_prange_kernel(...)
"""



# ---------------
# >>> Imports <<<
# ---------------
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

import numpy as np

# performance optimization
from joblib import Parallel, delayed
import numba
from numba import cuda
from numba.cuda.cudadrv.driver import CudaAPIError

from .color import pack_rgb
from .errors import InvalidArgumentError, OutOfMemoryError
from .mode_seeking import build_pixel_routines, denoise_pixel_numba, NEIGHBOURHOOD_SIZE



# --------------------
# >>> Host Kernels <<<
# --------------------

pack_rgb_numba = numba.njit(nogil=True)(pack_rgb)



@numba.njit(nogil=True)
def rlsf_band_kernel(
    data: np.ndarray,           # (H,W) uint32 packed input, read only
    row_start: int,
    row_end: int,               # exclusive
    radius: int,
    alpha: int,
    two_sigma_sq: float,
    max_iter: int,
    margin: int,                # skipped border width
    out: np.ndarray,            # (H,W) uint32 packed output
    iter_map: np.ndarray        # (H,W) int32
):
    H = data.shape[0]
    W = data.shape[1]

    # scratch buffer for the 3x3 distances, reused by every pixel of the band
    dists = np.empty(NEIGHBOURHOOD_SIZE, dtype=np.float64)

    for i in range(row_start, row_end):
        if i < margin or i >= H - margin:
            continue
        for j in range(margin, W - margin):
            r, g, b, n_iter = denoise_pixel_numba(data, i, j, radius, alpha, two_sigma_sq, max_iter, dists)

            # safe to write because every (i, j) belongs to exactly one task
            out[i, j] = pack_rgb_numba(int(r), int(g), int(b))
            iter_map[i, j] = n_iter



@numba.njit(parallel=True)
def rlsf_prange_kernel(data, radius, alpha, two_sigma_sq, max_iter, margin, out, iter_map):
    H = data.shape[0]

    # iterate over all rows in parallel
    for i in numba.prange(H):
        rlsf_band_kernel(data, i, i + 1, radius, alpha, two_sigma_sq, max_iter, margin, out, iter_map)



# -----------------------
# >>> Backend Runners <<<
# -----------------------
# Every runner has the same signature and only uses the options it needs.

def run_serial(data, out, iter_map, radius, alpha, two_sigma_sq, max_iter, margin,
               n_jobs=-1, rows_per_task=4, threads_per_block=(16, 16)):
    rlsf_band_kernel(data, 0, data.shape[0], radius, alpha, two_sigma_sq, max_iter, margin, out, iter_map)



def run_numba(data, out, iter_map, radius, alpha, two_sigma_sq, max_iter, margin,
              n_jobs=-1, rows_per_task=4, threads_per_block=(16, 16)):
    old_num_threads = numba.get_num_threads()
    if n_jobs is not None and n_jobs > 0:
        numba.set_num_threads(min(n_jobs, numba.config.NUMBA_NUM_THREADS))

    # hand out one row at a time, rows converge at very different speeds
    old_chunksize = numba.set_parallel_chunksize(1)
    try:
        rlsf_prange_kernel(data, radius, alpha, two_sigma_sq, max_iter, margin, out, iter_map)
    finally:
        numba.set_parallel_chunksize(old_chunksize)
        numba.set_num_threads(old_num_threads)



def run_threads(data, out, iter_map, radius, alpha, two_sigma_sq, max_iter, margin,
                n_jobs=-1, rows_per_task=4, threads_per_block=(16, 16)):
    H = data.shape[0]
    rows_per_task = max(1, int(rows_per_task))
    bands = [(start, min(H, start + rows_per_task)) for start in range(0, H, rows_per_task)]

    Parallel(n_jobs=n_jobs,
             prefer="threads",      # shared output buffers, the kernel releases the GIL
             batch_size=1           # because of unequal convergence per band
             )(
                delayed(rlsf_band_kernel)(
                    data, start, end, radius, alpha, two_sigma_sq, max_iter, margin, out, iter_map
                ) for start, end in bands
             )



# ---------------------
# >>> CUDA Backend <<<
# ---------------------

_CUDA_KERNEL = None

# driver error code of a failed device allocation
CUDA_ERROR_OUT_OF_MEMORY = 2


def cuda_available() -> bool:
    """
    True if numba can see a usable CUDA device (always True under NUMBA_ENABLE_CUDASIM=1).
    """
    return cuda.is_available()



def _get_cuda_kernel():
    """
    Compile (once) and return the CUDA RLSF kernel.
    """
    global _CUDA_KERNEL
    if _CUDA_KERNEL is not None:
        return _CUDA_KERNEL

    device_jit = cuda.jit(device=True)
    _, _, denoise_pixel_cuda = build_pixel_routines(device_jit)
    pack_rgb_cuda = device_jit(pack_rgb)

    @cuda.jit
    def rlsf_cuda_kernel(data, radius, alpha, two_sigma_sq, max_iter, margin, out, iter_map):
        # x runs along the columns, y along the rows
        j, i = cuda.grid(2)
        H = data.shape[0]
        W = data.shape[1]

        # threads of the last blocks may lie outside the image, border pixels are skipped
        if i < margin or i >= H - margin or j < margin or j >= W - margin:
            return

        dists = cuda.local.array(NEIGHBOURHOOD_SIZE, numba.float64)
        r, g, b, n_iter = denoise_pixel_cuda(data, i, j, radius, alpha, two_sigma_sq, max_iter, dists)
        out[i, j] = pack_rgb_cuda(int(r), int(g), int(b))
        iter_map[i, j] = n_iter

    _CUDA_KERNEL = rlsf_cuda_kernel
    return _CUDA_KERNEL



def run_cuda(data, out, iter_map, radius, alpha, two_sigma_sq, max_iter, margin,
             n_jobs=-1, rows_per_task=4, threads_per_block=(16, 16)):
    kernel = _get_cuda_kernel()
    H, W = data.shape

    tpb = (int(threads_per_block[0]), int(threads_per_block[1]))
    blocks_per_grid = grid_shape(H, W, tpb)

    # host -> device
    d_arrays = []
    try:
        for host_array in (data, out, iter_map):
            d_arrays.append(cuda.to_device(host_array))
    except CudaAPIError as error:
        if getattr(error, "code", None) != CUDA_ERROR_OUT_OF_MEMORY:
            raise
        # release what already made it to the device
        d_arrays.clear()
        raise OutOfMemoryError("filter_ms_rlsf", "Insufficient device memory !") from None
    d_data, d_out, d_iter_map = d_arrays

    kernel[blocks_per_grid, tpb](
        d_data, radius, alpha, two_sigma_sq, max_iter, margin, d_out, d_iter_map
    )
    cuda.synchronize()

    # device -> host
    d_out.copy_to_host(out)
    d_iter_map.copy_to_host(iter_map)



# ------------------------
# >>> Backend Registry <<<
# ------------------------

def _always() -> bool:
    return True



@dataclass(frozen=True)
class Backend:
    """
    A named execution strategy for the RLSF kernels.

    Attributes:
    - name (str): registry key, e.g. "numba".
    - run (Callable): runner with the shared runner signature.
    - is_available (Callable[[], bool]): whether the backend can run here.
    - description (str): short human readable summary.
    """
    name: str
    run: Callable
    is_available: Callable[[], bool]
    description: str



BACKENDS: Dict[str, Backend] = {
    "serial": Backend("serial", run_serial, _always, "compiled kernel on the calling thread"),
    "threads": Backend("threads", run_threads, _always, "joblib thread pool over row bands"),
    "numba": Backend("numba", run_numba, _always, "numba prange over rows"),
    "cuda": Backend("cuda", run_cuda, cuda_available, "numba CUDA kernel, one thread per pixel"),
}



def get_backend(name: str, func_name: str = "get_backend") -> Backend:
    """
    Look up a backend by name and make sure it can run.

    Raises:
    - InvalidArgumentError: unknown name or backend not available on this machine.
    """
    if name not in BACKENDS:
        raise InvalidArgumentError(func_name, f"Unknown backend '{name}', expected one of {list(BACKENDS)} !")

    backend = BACKENDS[name]
    if not backend.is_available():
        raise InvalidArgumentError(func_name, f"Backend '{name}' is not available on this machine !")
    return backend



def available_backends() -> List[str]:
    return [name for name, backend in BACKENDS.items() if backend.is_available()]



def grid_shape(num_rows: int, num_cols: int, threads_per_block: Tuple[int, int] = (16, 16)) -> Tuple[int, int]:
    """
    Blocks per grid (x, y) needed to cover an image with one thread per pixel.
    """
    tpb_x, tpb_y = threads_per_block
    return ((num_cols + tpb_x - 1) // tpb_x, (num_rows + tpb_y - 1) // tpb_y)
