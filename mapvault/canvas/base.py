#  Map Vault - Inference Backend Interfaces
#
#  Capability interfaces for the two model-backed canvas steps.
#  Concrete backends wrap Tesseract and a transformers segmentation model;
#  tests inject stubs.
#
#  Depends on: (none)
#  Used by:    canvas/tesseract.py, canvas/segformer.py, canvas/detection.py,
#              canvas/segmentation.py, container.py

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass

import numpy as np
from PIL import Image


@dataclass(frozen=True)
class TextRegion:
    """One OCR word box, in the pixel space of the image it was detected on."""

    x: int
    y: int
    width: int
    height: int
    text: str = ""
    confidence: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


class TextDetector(ABC):
    """Finds words in an image."""

    name: str = ""

    @abstractmethod
    def detect_text(self, image: Image.Image) -> list[TextRegion]:
        """Return every word box the engine found, unfiltered."""
        ...


class Segmenter(ABC):
    """Separates foreground from background."""

    name: str = ""

    @abstractmethod
    def segment(self, image: Image.Image) -> np.ndarray:
        """Return a (height, width) float mask in [0, 1]; 1 marks background."""
        ...
