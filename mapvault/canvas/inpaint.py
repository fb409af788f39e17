#  Map Vault - Region Inpainting
#
#  Fills text boxes with the average colour of their surroundings, and the
#  detect -> review -> remove session used to produce clean base maps.
#
#  Depends on: canvas/base.py, canvas/detection.py, canvas/raster.py
#  Used by:    services/imaging.py

import logging

import numpy as np
from PIL import Image

from mapvault.canvas.base import TextDetector, TextRegion
from mapvault.canvas.detection import detect_text_regions
from mapvault.canvas.raster import downscale
from mapvault.config import INPAINT_RADIUS, OCR_MAX_DIMENSION, OCR_MIN_CONFIDENCE
from mapvault.exceptions import InvalidStateError

logger = logging.getLogger("mapvault.canvas.inpaint")


def _clip_box(region: TextRegion, width: int, height: int) -> tuple[int, int, int, int] | None:
    x0 = max(0, int(region.x))
    y0 = max(0, int(region.y))
    x1 = min(width, int(region.x) + int(region.width))
    y1 = min(height, int(region.y) + int(region.height))
    if x0 >= x1 or y0 >= y1:
        return None
    return x0, y0, x1, y1


def _window_sums(values: np.ndarray, radius: int) -> np.ndarray:
    """Sum of values over the (2r+1)^2 window around each pixel, clipped at the edges."""
    h, w = values.shape[:2]
    integral = np.zeros((h + 1, w + 1) + values.shape[2:], dtype=np.int64)
    integral[1:, 1:] = values.cumsum(axis=0).cumsum(axis=1)

    rows = np.arange(h)
    cols = np.arange(w)
    y0 = np.clip(rows - radius, 0, h)
    y1 = np.clip(rows + radius + 1, 0, h)
    x0 = np.clip(cols - radius, 0, w)
    x1 = np.clip(cols + radius + 1, 0, w)

    return (
        integral[y1][:, x1]
        - integral[y0][:, x1]
        - integral[y1][:, x0]
        + integral[y0][:, x0]
    )


def inpaint_regions(
    image: Image.Image,
    regions: list[TextRegion],
    radius: int = INPAINT_RADIUS,
) -> Image.Image:
    """Return a new RGBA image with every region box filled from its neighbourhood.

    Samples come from the untouched input and skip every region box, so the
    result does not depend on region order.
    """
    src = np.array(image.convert("RGBA"), dtype=np.uint8)
    h, w = src.shape[:2]

    boxes = [b for b in (_clip_box(r, w, h) for r in regions) if b is not None]
    if not boxes:
        return Image.fromarray(src)

    # Only the union of boxes (plus the sampling radius) needs work
    cx0 = max(0, min(b[0] for b in boxes) - radius)
    cy0 = max(0, min(b[1] for b in boxes) - radius)
    cx1 = min(w, max(b[2] for b in boxes) + radius)
    cy1 = min(h, max(b[3] for b in boxes) + radius)
    crop = src[cy0:cy1, cx0:cx1]

    excluded = np.zeros(crop.shape[:2], dtype=bool)
    for x0, y0, x1, y1 in boxes:
        excluded[y0 - cy0:y1 - cy0, x0 - cx0:x1 - cx0] = True

    valid = (~excluded).astype(np.int64)
    rgb = crop[..., :3].astype(np.int64) * valid[..., None]

    sums = _window_sums(rgb, radius)
    counts = _window_sums(valid, radius)

    target = excluded & (counts > 0)
    means = np.floor(sums[target] / counts[target][:, None] + 0.5)

    out = src.copy()
    out_crop = out[cy0:cy1, cx0:cx1]
    out_crop[target, :3] = np.clip(means, 0, 255).astype(np.uint8)
    out_crop[target, 3] = 255

    logger.debug("Inpainted %d regions (%d pixels)", len(boxes), int(target.sum()))
    return Image.fromarray(out)


class TextRemovalSession:
    """Load an image, detect its labels, then paint them out.

    The detected regions can be replaced before remove_text() so a
    reviewer can drop false positives.
    """

    def __init__(
        self,
        detector: TextDetector,
        max_dim: int = OCR_MAX_DIMENSION,
        min_confidence: float = OCR_MIN_CONFIDENCE,
        radius: int = INPAINT_RADIUS,
    ):
        self._detector = detector
        self._max_dim = max_dim
        self._min_confidence = min_confidence
        self._radius = radius
        self._working: Image.Image | None = None
        self._cleaned: Image.Image | None = None
        self.regions: list[TextRegion] = []

    @property
    def working_image(self) -> Image.Image | None:
        return self._working

    @property
    def cleaned(self) -> Image.Image | None:
        return self._cleaned

    def load(self, image: Image.Image) -> Image.Image:
        self._working = downscale(image.convert("RGBA"), self._max_dim)
        self._cleaned = None
        self.regions = []
        return self._working

    def _require_loaded(self) -> Image.Image:
        if self._working is None:
            raise InvalidStateError("No image loaded")
        return self._working

    def detect(self) -> list[TextRegion]:
        working = self._require_loaded()
        # Working image is already within the cap, so no second resize happens
        result = detect_text_regions(
            working, self._detector,
            max_dim=self._max_dim, min_confidence=self._min_confidence,
        )
        self.regions = result.regions
        return self.regions

    def remove_text(self, regions: list[TextRegion] | None = None) -> Image.Image:
        working = self._require_loaded()
        if regions is not None:
            self.regions = list(regions)
        if not self.regions:
            raise InvalidStateError("No text regions to remove")
        self._cleaned = inpaint_regions(working, self.regions, self._radius)
        return self._cleaned

    def reset(self) -> None:
        self._cleaned = None
        self.regions = []
