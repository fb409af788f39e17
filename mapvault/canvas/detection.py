#  Map Vault - Text Region Detection
#
#  Downscales the image to the OCR working size, runs the injected
#  detector and keeps confident, non-empty words.
#
#  Depends on: canvas/base.py, canvas/raster.py, mapvault/config.py
#  Used by:    canvas/inpaint.py, services/imaging.py

import logging
from dataclasses import dataclass, field

from PIL import Image

from mapvault.canvas.base import TextDetector, TextRegion
from mapvault.canvas.raster import downscale
from mapvault.config import OCR_MAX_DIMENSION, OCR_MIN_CONFIDENCE

logger = logging.getLogger("mapvault.canvas.detection")


@dataclass
class DetectionResult:
    """Words found in working_image. scale maps original pixels to working pixels."""

    regions: list[TextRegion] = field(default_factory=list)
    working_image: Image.Image | None = None
    scale: float = 1.0

    @property
    def working_size(self) -> tuple[int, int]:
        if self.working_image is None:
            return (0, 0)
        return self.working_image.size


def detect_text_regions(
    image: Image.Image,
    detector: TextDetector,
    max_dim: int = OCR_MAX_DIMENSION,
    min_confidence: float = OCR_MIN_CONFIDENCE,
) -> DetectionResult:
    working = downscale(image, max_dim)
    words = detector.detect_text(working)
    regions = [
        r for r in words
        if r.confidence > min_confidence and r.text.strip() and r.width > 0 and r.height > 0
    ]
    logger.info(
        "Detected %d text regions (%d raw) on %dx%d image",
        len(regions), len(words), working.width, working.height,
    )
    scale = working.width / image.width if image.width else 1.0
    return DetectionResult(regions=regions, working_image=working, scale=scale)
