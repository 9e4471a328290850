"""Matrix multiply pipeline: C = A @ B with the ``simpleMultiply`` kernel."""

from __future__ import annotations

import logging
import os

import numpy as np

from cl_runtime import (
    AccessMode,
    IndexSpace,
    allocate,
    bind_arguments,
    build_program,
    dispatch,
    load_source,
    open_context,
    retrieve,
    to_device,
)
from cl_runtime.backend import Backend
from cl_runtime.config import DeviceSelection

logger = logging.getLogger(__name__)

KERNEL_DIR = os.path.join(os.path.dirname(__file__), "kernels")
MATMUL_SOURCE = os.path.join(KERNEL_DIR, "matmul.cl")
MATMUL_KERNEL = "simpleMultiply"


def demo_inputs(n: int = 128) -> tuple[np.ndarray, np.ndarray]:
    """Two n x n float32 matrices with M[i] = i in row-major order."""
    a = np.arange(n * n, dtype=np.float32).reshape(n, n)
    b = np.arange(n * n, dtype=np.float32).reshape(n, n)
    return a, b


def run_matmul(
    a: np.ndarray,
    b: np.ndarray,
    selection: DeviceSelection | None = None,
    local_extent: tuple[int, int] | None = (16, 16),
    source_path: str = MATMUL_SOURCE,
    backend: Backend | None = None,
    build_options: tuple[str, ...] = (),
) -> np.ndarray:
    """Multiply two float32 matrices on the selected device.

    The index space is (width of C, height of C), one work-item per output
    element. Both dimensions must be divisible by ``local_extent``.
    """
    a = np.ascontiguousarray(a, dtype=np.float32)
    b = np.ascontiguousarray(b, dtype=np.float32)
    if a.ndim != 2 or b.ndim != 2:
        raise ValueError(f"matmul expects 2-D matrices, got {a.shape} and {b.shape}")
    h_a, w_a = a.shape
    h_b, w_b = b.shape
    if w_a != h_b:
        raise ValueError(f"inner dimensions differ: {a.shape} @ {b.shape}")
    h_c, w_c = h_a, w_b

    source = load_source(source_path)
    index_space = IndexSpace(global_extent=(w_c, h_c), local_extent=local_extent)

    with open_context(selection, backend) as ctx:
        buf_a = to_device(ctx, a, AccessMode.READ_ONLY)
        buf_b = to_device(ctx, b, AccessMode.READ_ONLY)
        buf_c = allocate(ctx, h_c * w_c * a.itemsize, AccessMode.WRITE_ONLY)

        program = build_program(ctx, source, options=build_options, name=os.path.basename(source_path))
        kernel = program.kernel(MATMUL_KERNEL)

        invocation = bind_arguments(kernel, [
            buf_c,
            np.int32(w_a), np.int32(h_a),
            np.int32(w_b), np.int32(h_b),
            buf_a, buf_b,
        ])
        dispatch(ctx, invocation, index_space)

        c = retrieve(ctx, buf_c, (h_c, w_c), np.float32)
        logger.info(f"matmul {a.shape} @ {b.shape} done on {ctx.selected.device_name!r}")

    return c
