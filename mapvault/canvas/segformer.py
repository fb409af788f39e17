#  Map Vault - Transformers Segmenter
#
#  Background segmentation through a Hugging Face image-segmentation
#  pipeline (SegFormer by default). Runs on the GPU when torch sees one.
#  The pipeline is built lazily on first use and then reused.
#
#  Depends on: canvas/base.py, mapvault/config.py
#  Used by:    container.py

import logging
import threading

import numpy as np
from PIL import Image

from mapvault.canvas.base import Segmenter
from mapvault.config import SEGMENT_MODEL
from mapvault.exceptions import UpstreamError

logger = logging.getLogger("mapvault.canvas.segformer")


class TransformersSegmenter(Segmenter):
    name = "transformers"

    def __init__(self, model: str = SEGMENT_MODEL, device: int | str | None = None):
        self._model = model
        self._device = device
        self._pipe = None
        self._lock = threading.Lock()

    def _pipeline(self):
        with self._lock:
            if self._pipe is None:
                import torch
                from transformers import pipeline

                device = self._device
                if device is None:
                    device = 0 if torch.cuda.is_available() else -1
                logger.info("Loading segmentation model %s (device=%s)", self._model, device)
                self._pipe = pipeline("image-segmentation", model=self._model, device=device)
            return self._pipe

    def segment(self, image: Image.Image) -> np.ndarray:
        rgb = image.convert("RGB")
        try:
            result = self._pipeline()(rgb)
        except Exception as e:
            raise UpstreamError(f"Segmentation failed: {type(e).__name__}") from e

        if not result or not isinstance(result, list) or result[0].get("mask") is None:
            raise UpstreamError("Invalid segmentation result")

        mask = result[0]["mask"].convert("L")
        if mask.size != rgb.size:
            mask = mask.resize(rgb.size, Image.Resampling.NEAREST)
        return np.asarray(mask, dtype=np.float64) / 255.0
