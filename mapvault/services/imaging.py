#  Map Vault - Imaging Service
#
#  Runs the canvas engine against stored base maps: text detection,
#  label removal and background removal. Model inference is blocking,
#  so it runs in a worker thread.
#
#  Depends on: services/artifacts.py, canvas/*
#  Used by:    container.py, routes/base_maps.py

import asyncio
import logging

from mapvault.canvas.base import Segmenter, TextDetector, TextRegion
from mapvault.canvas.detection import DetectionResult, detect_text_regions
from mapvault.canvas.inpaint import TextRemovalSession
from mapvault.canvas.raster import to_png_bytes
from mapvault.canvas.segmentation import remove_background
from mapvault.config import (
    INPAINT_RADIUS,
    OCR_MAX_DIMENSION,
    OCR_MIN_CONFIDENCE,
    SEGMENT_MAX_DIMENSION,
)
from mapvault.services.artifacts import ArtifactService

logger = logging.getLogger("mapvault.imaging")


class ImagingService:
    def __init__(self, artifacts: ArtifactService, detector: TextDetector, segmenter: Segmenter):
        self._artifacts = artifacts
        self._detector = detector
        self._segmenter = segmenter

    async def detect_text(self, base_map_id: str) -> DetectionResult:
        """OCR the base map at working resolution. Region coordinates are working pixels."""
        base_map = await self._artifacts.get_base_map(base_map_id)
        image = await self._artifacts.load_base_map_image(base_map)
        return await asyncio.to_thread(
            detect_text_regions, image, self._detector, OCR_MAX_DIMENSION, OCR_MIN_CONFIDENCE,
        )

    async def clean(
        self, base_map_id: str, regions: list[TextRegion] | None = None, user_id: str | None = None,
    ) -> dict:
        """Inpaint regions (or freshly detected ones) and save as a new base map.

        Supplied regions are in working pixels, as returned by detect_text().
        """
        base_map = await self._artifacts.get_base_map(base_map_id)
        image = await self._artifacts.load_base_map_image(base_map)
        session = TextRemovalSession(
            self._detector, max_dim=OCR_MAX_DIMENSION,
            min_confidence=OCR_MIN_CONFIDENCE, radius=INPAINT_RADIUS,
        )

        def _run():
            session.load(image)
            if regions is None:
                session.detect()
            return session.remove_text(regions)

        cleaned = await asyncio.to_thread(_run)
        logger.info("Removed %d text regions from base map %s", len(session.regions), base_map_id)
        return await self._artifacts.save_clean_base_map(base_map, cleaned, user_id)

    async def remove_background(self, base_map_id: str) -> bytes:
        base_map = await self._artifacts.get_base_map(base_map_id)
        image = await self._artifacts.load_base_map_image(base_map)

        def _run() -> bytes:
            return to_png_bytes(remove_background(image, self._segmenter, SEGMENT_MAX_DIMENSION))

        return await asyncio.to_thread(_run)
