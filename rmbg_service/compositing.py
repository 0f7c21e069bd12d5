"""Apply a segmentation mask to an image's alpha channel."""

from __future__ import annotations

import logging
import math
from typing import Optional, Tuple

import numpy as np
from PIL import Image

from .errors import CanvasContextError, MaskShapeError

logger = logging.getLogger(__name__)


def _mask_grid(mask: np.ndarray, mask_size: Optional[Tuple[int, int]] = None) -> np.ndarray:
    """
    Return the mask as a 2-D (height, width) float grid.

    Resolution order: explicit ``mask_size``, then the array's trailing two
    dimensions, then a square side of floor(sqrt(len)) for flat masks.
    """
    values = np.asarray(mask, dtype=np.float32)

    if mask_size is not None:
        width, height = mask_size
        if width <= 0 or height <= 0 or values.size != width * height:
            raise MaskShapeError(
                f"Mask has {values.size} values, expected {width}x{height}"
            )
        return values.reshape(height, width)

    if values.ndim >= 2:
        height, width = values.shape[-2:]
        if values.size != height * width:
            raise MaskShapeError(f"Mask shape {values.shape} holds more than one plane")
        return values.reshape(height, width)

    flat = values.reshape(-1)
    side = math.isqrt(flat.size)
    if side * side != flat.size:
        logger.warning("composite: flat mask of %d values is not square, using %dx%d", flat.size, side, side)
    return flat[: side * side].reshape(side, side)


def mask_to_alpha(grid: np.ndarray) -> np.ndarray:
    """Scale mask values to uint8 alpha (round half up, clamp to [0, 255])."""
    grid = np.nan_to_num(grid, nan=0.0)
    alpha = np.floor(np.clip(grid, 0.0, 1.0) * 255.0 + 0.5)
    return alpha.astype(np.uint8)


def composite(
    image: Image.Image,
    mask: np.ndarray,
    mask_size: Optional[Tuple[int, int]] = None,
) -> Image.Image:
    """
    Write ``mask`` into the alpha channel of a copy of ``image``.

    Each pixel takes the nearest-lower mask cell:
    ``mask_x = floor(x * mask_w / width)``, ``mask_y = floor(y * mask_h / height)``.
    RGB values are copied untouched; there is no feathering.
    """
    width, height = image.size
    if width <= 0 or height <= 0:
        raise CanvasContextError(f"Cannot composite onto an empty {width}x{height} image")
    try:
        rgba = np.array(image.convert("RGBA"), dtype=np.uint8)
    except (ValueError, OSError) as exc:
        raise CanvasContextError(f"Cannot read pixels from {image.mode} image") from exc

    grid = _mask_grid(mask, mask_size)
    mask_h, mask_w = grid.shape
    if mask_h == 0 or mask_w == 0:
        rgba[..., 3] = 0
        return Image.fromarray(rgba)

    xs = (np.arange(width, dtype=np.int64) * mask_w) // width
    ys = (np.arange(height, dtype=np.int64) * mask_h) // height
    alpha = mask_to_alpha(grid)
    rgba[..., 3] = alpha[ys[:, None], xs[None, :]]

    logger.debug("composite: %dx%d image from %dx%d mask", width, height, mask_w, mask_h)
    return Image.fromarray(rgba)
