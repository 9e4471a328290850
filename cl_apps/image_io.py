"""Image codec collaborator: grayscale float pixel arrays <-> image files (Pillow)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

import numpy as np
from PIL import Image


@dataclass
class ImageMeta:
    """What the encoder needs from the original file to write a matching one."""
    format: str | None
    mode: str
    size: tuple[int, int]  # (width, height)
    info: dict = field(default_factory=dict)


def read_image(path: str) -> tuple[np.ndarray, ImageMeta]:
    """Decode ``path`` into a float32 (H, W) array of intensities in 0..255."""
    with Image.open(path) as img:
        meta = ImageMeta(format=img.format, mode=img.mode, size=img.size, info=dict(img.info))
        pixels = np.asarray(img.convert("L"), dtype=np.float32)
    return np.ascontiguousarray(pixels), meta


def write_image(pixels: np.ndarray, path: str, meta: ImageMeta | None = None) -> None:
    """Encode a float (H, W) array to ``path``, reusing the original format when known.

    Values are rounded and clipped to 0..255. Color sources are written back
    as gray replicated across channels.
    """
    if pixels.ndim != 2:
        raise ValueError(f"expected a 2-D pixel array, got shape {pixels.shape}")
    if meta is not None and (pixels.shape[1], pixels.shape[0]) != meta.size:
        raise ValueError(f"pixel array {pixels.shape} does not match original size {meta.size}")

    data = np.clip(np.rint(pixels), 0, 255).astype(np.uint8)
    img = Image.fromarray(data)
    if meta is not None and meta.mode in ("RGB", "RGBA"):
        img = img.convert(meta.mode)

    # The output extension wins; an unknown one falls back to the input format
    ext = os.path.splitext(path)[1].lower()
    fmt = Image.registered_extensions().get(ext) or (meta.format if meta is not None else None)
    save_kwargs = {}
    if fmt:
        save_kwargs["format"] = fmt
    if meta is not None and "dpi" in meta.info:
        save_kwargs["dpi"] = meta.info["dpi"]
    img.save(path, **save_kwargs)
