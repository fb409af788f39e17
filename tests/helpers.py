#  Map Vault - Test Helpers
#
#  Fakes and small builders shared by fixtures and test modules.
#
#  Depends on: mapvault/canvas/base.py
#  Used by:    tests/conftest.py, tests/unit/*, tests/integration/*

import io
import time

import numpy as np
from PIL import Image

from mapvault.canvas.base import Segmenter, TextDetector, TextRegion

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"


class FakeClock:
    """Manually advanced clock for window arithmetic."""

    def __init__(self, start: float | None = None):
        self.now = time.time() if start is None else start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubTextDetector(TextDetector):
    name = "stub"

    def __init__(self, regions: list[TextRegion] | None = None):
        self.regions = regions or []
        self.calls: list[tuple[int, int]] = []

    def detect_text(self, image):
        self.calls.append(image.size)
        return list(self.regions)


class StubSegmenter(Segmenter):
    """Marks the left half of the image as background."""

    name = "stub"

    def __init__(self):
        self.calls: list[tuple[int, int]] = []

    def segment(self, image):
        self.calls.append(image.size)
        mask = np.zeros((image.height, image.width), dtype=np.float64)
        mask[:, : image.width // 2] = 1.0
        return mask


def make_png(width: int = 64, height: int = 48, color=(40, 120, 200, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def register_and_login(client, email: str, password: str = "testpass123") -> str:
    """Register a user through the API and return an access token."""
    resp = await client.post("/api/auth/register", json={
        "email": email,
        "password": password,
        "display_name": email.split("@")[0],
    })
    assert resp.status_code == 201, resp.text
    resp = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"]
