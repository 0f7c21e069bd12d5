"""
Image preprocessing for RMBG.

The model takes a fixed 1024x1024 RGB input scaled to [0, 1]. Images are
stretched to that square regardless of aspect ratio; the compositor maps the
mask back onto the original grid afterwards.
"""

from __future__ import annotations

import numpy as np
from PIL import Image

INPUT_SIZE = 1024


def preprocess(image: Image.Image, size: int = INPUT_SIZE) -> np.ndarray:
    """
    Resize to ``size`` x ``size`` and return a float32 NCHW tensor.

    The alpha channel, if any, is dropped before resizing.
    """
    resized = image.convert("RGB").resize((size, size), Image.BILINEAR)
    im_np = np.asarray(resized, dtype=np.float32) / 255.0
    im_np = np.transpose(im_np, (2, 0, 1))  # HWC -> CHW
    return np.ascontiguousarray(im_np[np.newaxis, ...], dtype=np.float32)
