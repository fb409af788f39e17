#  Map Vault - Tesseract Text Detector
#
#  Word-level OCR through pytesseract.image_to_data.
#  pytesseract is imported on first use so the service starts without it.
#
#  Depends on: canvas/base.py, mapvault/config.py
#  Used by:    container.py

import logging

from PIL import Image

from mapvault.canvas.base import TextDetector, TextRegion
from mapvault.config import OCR_LANGUAGE
from mapvault.exceptions import UpstreamError

logger = logging.getLogger("mapvault.canvas.tesseract")


class TesseractTextDetector(TextDetector):
    name = "tesseract"

    def __init__(self, lang: str = OCR_LANGUAGE):
        self._lang = lang

    def detect_text(self, image: Image.Image) -> list[TextRegion]:
        import pytesseract
        from pytesseract import Output

        try:
            data = pytesseract.image_to_data(
                image.convert("RGB"), lang=self._lang, output_type=Output.DICT,
            )
        except (pytesseract.TesseractError, OSError) as e:
            raise UpstreamError(f"OCR engine failed: {type(e).__name__}") from e

        regions = []
        for text, conf, left, top, width, height in zip(
            data.get("text", []), data.get("conf", []),
            data.get("left", []), data.get("top", []),
            data.get("width", []), data.get("height", []),
        ):
            text = (text or "").strip()
            if not text:
                continue
            try:
                confidence = float(conf)
            except (TypeError, ValueError):
                continue
            # Tesseract reports -1 for non-word layout rows
            if confidence < 0:
                continue
            regions.append(TextRegion(
                x=int(left), y=int(top), width=int(width), height=int(height),
                text=text, confidence=confidence,
            ))
        logger.debug("Tesseract returned %d words", len(regions))
        return regions
