"""Image rotation pipeline: rotate a grayscale image about its centre with ``img_rotate``."""

from __future__ import annotations

import logging
import math
import os

import numpy as np

from cl_apps.image_io import read_image, write_image
from cl_runtime import (
    AccessMode,
    IndexSpace,
    allocate_like,
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
ROTATION_SOURCE = os.path.join(KERNEL_DIR, "rotation.cl")
ROTATION_KERNEL = "img_rotate"
DEFAULT_THETA = 3.14159 / 6


def run_rotation(
    image: np.ndarray,
    theta: float = DEFAULT_THETA,
    selection: DeviceSelection | None = None,
    local_extent: tuple[int, int] | None = None,
    source_path: str = ROTATION_SOURCE,
    backend: Backend | None = None,
    build_options: tuple[str, ...] = (),
) -> np.ndarray:
    """Rotate a (H, W) float32 image by ``theta`` radians.

    The output has the input's shape. Pixels whose inverse-rotated position
    falls outside the source are 0. Work-items do not communicate, so no local
    extent is needed; one may still be given for tuning.
    """
    src = np.ascontiguousarray(image, dtype=np.float32)
    if src.ndim != 2:
        raise ValueError(f"rotation expects a 2-D image, got shape {src.shape}")
    height, width = src.shape

    source = load_source(source_path)
    index_space = IndexSpace(global_extent=(width, height), local_extent=local_extent)

    with open_context(selection, backend) as ctx:
        d_src = to_device(ctx, src, AccessMode.READ_ONLY)
        d_dst = allocate_like(ctx, src, AccessMode.READ_WRITE)

        program = build_program(ctx, source, options=build_options, name=os.path.basename(source_path))
        kernel = program.kernel(ROTATION_KERNEL)

        invocation = bind_arguments(kernel, [
            d_dst, d_src,
            np.int32(width), np.int32(height),
            np.float32(math.sin(theta)), np.float32(math.cos(theta)),
        ])
        dispatch(ctx, invocation, index_space)

        rotated = retrieve(ctx, d_dst, (height, width), np.float32)
        logger.info(f"rotated {width}x{height} image by {theta:0.5} rad on {ctx.selected.device_name!r}")

    return rotated


def rotate_file(
    input_path: str,
    output_path: str,
    theta: float = DEFAULT_THETA,
    selection: DeviceSelection | None = None,
    **kwargs,
) -> np.ndarray:
    """Read an image, rotate it and write it with the original file's format."""
    pixels, meta = read_image(input_path)
    rotated = run_rotation(pixels, theta, selection, **kwargs)
    write_image(rotated, output_path, meta)
    return rotated
