#  Map Vault - Raster Helpers
#
#  Aspect-preserving downscale and PNG encode/decode shared by the
#  detection, inpainting and segmentation steps.
#
#  Depends on: (none)
#  Used by:    canvas/*, services/imaging.py, services/artifacts.py

import io
import math

from PIL import Image


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (what canvas code expects)."""
    return int(math.floor(value + 0.5))


def fit_within(width: int, height: int, max_dim: int) -> tuple[int, int]:
    """Size that caps the longest side at max_dim, preserving aspect ratio.

    Sizes already within the cap come back unchanged.
    """
    if width > max_dim or height > max_dim:
        if width > height:
            return max_dim, round_half_up((height * max_dim) / width)
        return round_half_up((width * max_dim) / height), max_dim
    return width, height


def downscale(image: Image.Image, max_dim: int) -> Image.Image:
    """Resize image so neither side exceeds max_dim. Returns image itself if it fits."""
    size = fit_within(image.width, image.height, max_dim)
    if size == image.size:
        return image
    return image.resize(size, Image.Resampling.LANCZOS)


def open_image(data: bytes) -> Image.Image:
    """Decode image bytes. Raises ValueError for anything Pillow can't read."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except Exception as e:
        raise ValueError("Unsupported image format") from e
    return img


def to_png_bytes(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()
