#  Map Vault - Background Removal
#
#  Turns a segmentation mask into an alpha channel.
#
#  Depends on: canvas/base.py, canvas/raster.py
#  Used by:    services/imaging.py

import logging

import numpy as np
from PIL import Image

from mapvault.canvas.base import Segmenter
from mapvault.canvas.raster import downscale
from mapvault.config import SEGMENT_MAX_DIMENSION
from mapvault.exceptions import UpstreamError

logger = logging.getLogger("mapvault.canvas.segmentation")


def mask_to_alpha(mask: np.ndarray) -> np.ndarray:
    """Background mask (1 = background) to 8-bit alpha (255 = keep)."""
    m = np.asarray(mask, dtype=np.float64)
    return np.clip(np.floor((1.0 - m) * 255.0 + 0.5), 0, 255).astype(np.uint8)


def remove_background(
    image: Image.Image,
    segmenter: Segmenter,
    max_dim: int = SEGMENT_MAX_DIMENSION,
) -> Image.Image:
    working = downscale(image.convert("RGB"), max_dim)
    mask = np.asarray(segmenter.segment(working))
    if mask.shape != (working.height, working.width):
        raise UpstreamError("Invalid segmentation result")

    rgba = np.array(working.convert("RGBA"), dtype=np.uint8)
    rgba[..., 3] = mask_to_alpha(mask)
    logger.info("Removed background on %dx%d image", working.width, working.height)
    return Image.fromarray(rgba)
